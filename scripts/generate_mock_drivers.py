import pandas as pd
import numpy as np

def generate_mock_drivers(filename="mock_drivers_100.csv", count=100, seed=None):
    """
    Generates nearby-driver rows shaped like the find_nearby_drivers output,
    scattered around central Kinshasa, for the offline dispatch simulation.
    Roughly 1 in 5 drivers is missing stats to exercise the ranking defaults.
    """
    rng = np.random.default_rng(seed)

    # Base coordinate roughly mapping to Gombe, Kinshasa.
    base_lat = -4.325
    base_lon = 15.322

    # Scatter drivers randomly around the centre (roughly +/- 8km)
    lat = base_lat + (rng.random(count) - 0.5) * 0.15
    lon = base_lon + (rng.random(count) - 0.5) * 0.15

    # Straight-line km using an equirectangular approximation, fine at city scale
    distance_km = np.sqrt(
        ((lat - base_lat) * 111.32) ** 2 +
        ((lon - base_lon) * 111.32 * np.cos(np.radians(base_lat))) ** 2
    )

    df = pd.DataFrame({
        "driver_id": [f"DRV-{str(i+1).zfill(3)}" for i in range(count)],
        "lat": np.round(lat, 6),
        "lon": np.round(lon, 6),
        "distance_km": np.round(distance_km, 2),
        "rating_average": np.round(rng.uniform(2.5, 5.0, count), 2),
        "total_rides": rng.integers(0, 400, count),
        "acceptance_rate": np.round(rng.uniform(0.3, 1.0, count), 2),
        "avg_pickup_time": np.round(rng.uniform(2, 15, count), 1),
        "vehicle_class": rng.choice(["standard", "moto", "truck"], count, p=[0.6, 0.3, 0.1]),
    })

    # Knock out some stats: new drivers the data store has nothing for
    missing = rng.random(count) < 0.2
    df.loc[missing, ["rating_average", "acceptance_rate", "avg_pickup_time"]] = np.nan

    df.to_csv(filename, index=False)
    print(f"Successfully generated {count} mock drivers into '{filename}'.")
    return df

if __name__ == "__main__":
    generate_mock_drivers()
