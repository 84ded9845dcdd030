"""Unit tests for utils.distance module."""

import pytest

from georelay.utils.distance import EARTH_RADIUS_KM, haversine_km


class TestHaversine:
    """haversine_km()."""

    def test_zero_distance(self) -> None:
        assert haversine_km(40.0, -74.0, 40.0, -74.0) == 0.0

    def test_symmetric(self) -> None:
        assert haversine_km(40.0, -74.0, 51.5, -0.1) == pytest.approx(
            haversine_km(51.5, -0.1, 40.0, -74.0)
        )

    def test_new_york_london(self) -> None:
        assert haversine_km(40.71, -74.0, 51.5, -0.12) == pytest.approx(5570, rel=0.01)

    def test_antipodes_half_circumference(self) -> None:
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(3.141592653589793 * EARTH_RADIUS_KM)
