"""Tests for great-circle distance and radius inclusion."""

import math

import pytest

from bloodlink.manager.geo_filter import EARTH_RADIUS_KM, distance_km, within
from bloodlink.models.party import Location

PARIS = Location(latitude=48.8566, longitude=2.3522)
LONDON = Location(latitude=51.5074, longitude=-0.1278)
DAKAR = Location(latitude=14.7167, longitude=-17.4677)
SYDNEY = Location(latitude=-33.8688, longitude=151.2093)


class TestDistance:
    """Tests for distance_km."""

    @pytest.mark.parametrize("point", [PARIS, DAKAR, SYDNEY, Location(latitude=0, longitude=0)])
    def test_zero_distance_to_self(self, point):
        assert distance_km(point, point) == 0

    @pytest.mark.parametrize("a,b", [(PARIS, LONDON), (DAKAR, SYDNEY), (LONDON, SYDNEY)])
    def test_symmetric(self, a, b):
        assert distance_km(a, b) == pytest.approx(distance_km(b, a))

    def test_known_distance(self):
        # Paris - London is roughly 344 km
        assert distance_km(PARIS, LONDON) == pytest.approx(343.5, abs=1.0)

    def test_antipodes(self):
        a = Location(latitude=0, longitude=0)
        b = Location(latitude=0, longitude=180)
        assert distance_km(a, b) == pytest.approx(math.pi * EARTH_RADIUS_KM)

    def test_nan_propagates(self):
        bad = Location(latitude=float("nan"), longitude=10)
        assert math.isnan(distance_km(bad, PARIS))


class TestWithin:
    """Tests for within."""

    def test_inside_radius(self):
        assert within(PARIS, LONDON, 400) is True

    def test_outside_radius(self):
        assert within(PARIS, LONDON, 300) is False

    def test_boundary_is_inclusive(self):
        radius = distance_km(PARIS, DAKAR)
        assert within(PARIS, DAKAR, radius) is True

    def test_matches_distance_comparison(self):
        for radius in (0, 1, 343, 344, 5000):
            assert within(PARIS, LONDON, radius) == (distance_km(PARIS, LONDON) <= radius)

    def test_nan_never_within(self):
        bad = Location(latitude=float("nan"), longitude=float("nan"))
        assert within(bad, PARIS, 1e9) is False

    def test_missing_location_never_within(self):
        assert within(None, PARIS, 1e9) is False
        assert within(PARIS, None, 1e9) is False
