import pytest

from routing.eta_service import calculate_eta, haversine_km


def test_eta_formula():
    # ceil(distance / speed * 60 + 1.5)
    assert calculate_eta(0) == 2
    assert calculate_eta(1) == 4
    assert calculate_eta(5) == 12
    assert calculate_eta(10) == 22
    assert calculate_eta(10, avg_speed_kmh=60) == 12


def test_eta_grows_with_distance():
    etas = [calculate_eta(distance) for distance in range(0, 30)]

    assert etas == sorted(etas)


@pytest.mark.parametrize("speed", [0, -5])
def test_eta_rejects_non_positive_speed(speed):
    with pytest.raises(ValueError):
        calculate_eta(3, avg_speed_kmh=speed)


def test_eta_rejects_negative_distance():
    with pytest.raises(ValueError):
        calculate_eta(-1)


def test_haversine_known_distance():
    # Kinshasa (Gombe) to Brazzaville centre, roughly 8.7 km across the river
    gombe = (-4.3033, 15.3100)
    brazzaville = (-4.2634, 15.2429)

    distance = haversine_km(gombe, brazzaville)

    assert 7 < distance < 9
    assert haversine_km(gombe, gombe) == 0
    assert haversine_km(gombe, brazzaville) == pytest.approx(haversine_km(brazzaville, gombe))
