"""
Tests for great-circle distance and position helpers.
"""

import pytest

from geo import EARTH_RADIUS, earth_radius, haversine_distance, parse_location, entity_position

KM = EARTH_RADIUS["km"]


class TestHaversineDistance:
    """Test great-circle distance calculations."""

    def test_same_point(self):
        """Test distance from point to itself is zero."""
        dist = haversine_distance(40.0, -74.0, 40.0, -74.0, KM)
        assert dist == 0.0

    def test_symmetric(self):
        """Test distance is the same in both directions."""
        d1 = haversine_distance(53.8, -1.55, 51.5, -0.12, KM)
        d2 = haversine_distance(51.5, -0.12, 53.8, -1.55, KM)
        assert d1 == pytest.approx(d2)

    def test_known_distance(self):
        """Test known distance between cities."""
        # New York (40.7128, -74.0060) to London (51.5074, -0.1278)
        # Actual distance ~5570 km
        dist = haversine_distance(40.7128, -74.0060, 51.5074, -0.1278, KM)
        assert 5500 <= dist <= 5650

    def test_equator_degree_in_km(self):
        """Test 1 degree of longitude at the equator is ~111.2 km."""
        dist = haversine_distance(0, 0, 0, 1, KM)
        assert dist == pytest.approx(111.2, rel=0.005)

    def test_antipodal_points(self):
        """Test distance between antipodal points (half circumference)."""
        dist = haversine_distance(0, 0, 0, 180, KM)
        assert 20000 <= dist <= 20100

    def test_units_scale_with_radius(self):
        """Test miles and meters are consistent with kilometers."""
        km = haversine_distance(0, 0, 0, 1, earth_radius("km"))
        m = haversine_distance(0, 0, 0, 1, earth_radius("m"))
        mi = haversine_distance(0, 0, 0, 1, earth_radius("mi"))
        assert m == pytest.approx(km * 1000)
        assert mi == pytest.approx(69.1, rel=0.005)

    def test_unknown_unit(self):
        """Test unknown unit raises error."""
        with pytest.raises(ValueError):
            earth_radius("furlongs")


class TestParseLocation:
    """Test "lat,lng" parsing."""

    def test_valid_pair(self):
        assert parse_location("40.7128,-74.0060") == (40.7128, -74.006)

    def test_whitespace(self):
        assert parse_location(" 51.5 , -0.12 ") == (51.5, -0.12)

    def test_place_name(self):
        """Test a place name is not a coordinate pair."""
        assert parse_location("Leeds, UK") is None

    def test_empty(self):
        assert parse_location("") is None
        assert parse_location(None) is None

    def test_wrong_arity(self):
        assert parse_location("1,2,3") is None
        assert parse_location("51.5") is None

    def test_out_of_range(self):
        assert parse_location("91,0") is None
        assert parse_location("0,181") is None

    def test_nan(self):
        assert parse_location("nan,0") is None


class TestEntityPosition:
    """Test reading positions from entity documents."""

    def test_lat_long(self):
        assert entity_position({"location": {"lat": 53.8, "long": -1.55}}) == (53.8, -1.55)

    def test_lng_alias(self):
        assert entity_position({"location": {"lat": 53.8, "lng": -1.55}}) == (53.8, -1.55)

    def test_numeric_strings(self):
        assert entity_position({"location": {"lat": "53.8", "long": "-1.55"}}) == (53.8, -1.55)

    def test_missing_location(self):
        assert entity_position({"name": "No Place FC"}) is None

    def test_location_not_a_mapping(self):
        assert entity_position({"location": "Leeds"}) is None

    def test_missing_longitude(self):
        assert entity_position({"location": {"lat": 53.8, "address": "Leeds"}}) is None

    def test_non_numeric(self):
        assert entity_position({"location": {"lat": "north", "long": -1.55}}) is None

    def test_boolean_rejected(self):
        assert entity_position({"location": {"lat": True, "long": False}}) is None

    def test_zero_is_a_position(self):
        """Test (0, 0) is treated as a real position, not missing."""
        assert entity_position({"location": {"lat": 0, "long": 0}}) == (0.0, 0.0)
