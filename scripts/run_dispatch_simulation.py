import asyncio
import math
import os
from datetime import datetime, timedelta, timezone
from typing import List

import pandas as pd

from dispatch.dispatcher import Dispatcher
from dispatch.wait_time import WaitTimeEstimator
from drivers.models import DriverCandidate, Priority
from orders.models import OrderType, RideRequest
from routing.eta_service import haversine_km

class CsvDriverGateway:
    """
    Offline stand-in for DataStoreGateway backed by a drivers CSV.
    Distances are measured from each request's pickup to the driver's lat/lon.
    Collects notifications instead of writing them anywhere.
    """
    def __init__(self, drivers_df: pd.DataFrame):
        self.drivers_df = drivers_df
        self.sent = []
        self.status_updates = []
        self.activity = []

    def _with_distance(self, location) -> pd.DataFrame:
        distances = self.drivers_df.apply(lambda row: haversine_km(location, (row["lat"], row["lon"])), axis=1)
        return self.drivers_df.assign(distance_km=distances.round(2))

    async def find_nearby_drivers(self, pickup, radius_km, *, vehicle_class=None, min_rating=None, city=None):
        drivers = self._with_distance(pickup)
        rows = drivers[drivers["distance_km"] <= radius_km]
        if vehicle_class:
            rows = rows[rows["vehicle_class"] == vehicle_class]
        return [DriverCandidate.from_record(_clean(row)) for row in rows.to_dict("records")]

    async def push_notifications(self, notifications):
        self.sent.extend(notifications)

    async def push_status_updates(self, updates):
        for update in updates:
            print(f"  -> requester: {update['message']}")
        self.status_updates.extend(updates)

    async def log_activity(self, entry):
        self.activity.append(entry)

    async def count_available_drivers(self, location):
        return int((self._with_distance(location)["distance_km"] <= 5).sum())

    async def recent_assignments(self, city, limit=50):
        # Fake history: assignments between 1 and 12 minutes after creation
        now = datetime.now(timezone.utc)
        return [
            {"created_at": now - timedelta(minutes=20 + i), "driver_assigned_at": now - timedelta(minutes=20 + i - (1 + i % 12))}
            for i in range(limit)
        ]

def _clean(row):
    # pandas gives NaN for missing stats, the models expect None
    return {key: (None if isinstance(value, float) and math.isnan(value) else value) for key, value in row.items()}

def load_drivers(filepath="mock_drivers_100.csv") -> pd.DataFrame:
    # Resolve the correct path depending on where the user runs the script from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = filepath if os.path.isabs(filepath) else os.path.join(base_dir, filepath)
    return pd.read_csv(absolute_path)

async def run_simulation(requests: List[RideRequest], drivers_df: pd.DataFrame):
    gateway = CsvDriverGateway(drivers_df)
    dispatcher = Dispatcher(gateway)
    estimator = WaitTimeEstimator(gateway)

    for request in requests:
        estimate = await estimator.estimate_wait_time(request.pickup, request.city)
        print(f"\nBooking {request.booking_id} ({request.order_type.value}, {request.priority.value})")
        print(f"  Wait estimate: {estimate.estimated} min [{estimate.confidence.value}] - {estimate.message}")

        result = await dispatcher.dispatch(request)
        if not result.success:
            print(f"[FAILED] {result.message}")
            continue

        print(f"  Search radius used: {result.search_radius_km}km")
        for wave in result.waves:
            summary = [f"{d.driver_id}(#{d.rank}, {d.predicted_score}pts, {d.estimated_arrival}min)" for d in wave.drivers]
            print(f"  Wave {wave.number} until {wave.expires_at:%H:%M:%S} ({len(wave)} drivers): {summary}")

    print(f"\nTotal notifications sent: {len(gateway.sent)}")

def main():
    print("=== STARTING OFFLINE DISPATCH SIMULATION ===")
    drivers_df = load_drivers()
    print(f"Loaded {len(drivers_df)} Drivers.")

    pickup = (-4.325, 15.322)
    requests = [
        RideRequest(booking_id="BK-001", pickup=pickup, destination=(-4.38, 15.30), estimated_price=4500),
        RideRequest(booking_id="BK-002", pickup=pickup, priority=Priority.HIGH, estimated_price=7000),
        RideRequest(booking_id="BK-003", pickup=pickup, order_type=OrderType.DELIVERY, delivery_type="flash", estimated_price=2500),
    ]
    asyncio.run(run_simulation(requests, drivers_df))
    print("\n=== SIMULATION COMPLETE ===")

if __name__ == "__main__":
    main()
