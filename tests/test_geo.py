"""Tests for shared coordinate helpers."""

import math

import pytest

from shared.geo import GeoPoint, haversine_km, is_valid_coordinate, path_length_km


class TestValidCoordinate:
    def test_in_range(self):
        assert is_valid_coordinate(52.52, 13.405)
        assert is_valid_coordinate(-90.0, 180.0)
        assert is_valid_coordinate(90.0, -180.0)

    def test_out_of_range(self):
        assert not is_valid_coordinate(90.0001, 0.0)
        assert not is_valid_coordinate(0.0, -180.5)

    def test_non_finite(self):
        assert not is_valid_coordinate(math.nan, 0.0)
        assert not is_valid_coordinate(0.0, math.inf)


class TestHaversine:
    def test_zero_distance(self):
        p = GeoPoint(lat=52.52, lon=13.405)
        assert haversine_km(p, p) == 0.0

    def test_berlin_paris(self):
        berlin = GeoPoint(lat=52.52, lon=13.405)
        paris = GeoPoint(lat=48.8566, lon=2.3522)
        assert haversine_km(berlin, paris) == pytest.approx(878, abs=5)

    def test_one_degree_latitude(self):
        d = haversine_km(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
        assert d == pytest.approx(111.19, abs=0.1)

    def test_path_length(self):
        pts = [GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0), GeoPoint(2.0, 0.0)]
        assert path_length_km(pts) == pytest.approx(2 * 111.19, abs=0.2)

    def test_path_length_short(self):
        assert path_length_km([]) == 0.0
        assert path_length_km([GeoPoint(1.0, 1.0)]) == 0.0
