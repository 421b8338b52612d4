"""Tests for fuelwatch.analytics."""

import pytest

from fuelwatch.analytics import (
    OTHER_REGION,
    cheapest_by_region,
    cheapest_national,
    haversine_km,
    mappable_stations,
    national_average,
    nearby_stations,
    postcode_area,
    price_summary,
    region_for_postcode,
    top_n_cheapest,
)
from fuelwatch.core.models import FuelType, Location

E10 = FuelType.E10
B7 = FuelType.B7


@pytest.fixture
def trio(make_station):
    """Three London-ish stations at 135, 140 and 999 pence for E10."""
    return [
        make_station("a-1", postcode="SW1A 1AA", prices={E10: 135.0}),
        make_station("a-2", postcode="SW7 2AZ", prices={E10: 140.0}),
        make_station("a-3", postcode="M1 1AE", prices={E10: 999.0}),
    ]


class TestRegions:
    @pytest.mark.parametrize(
        "postcode,area",
        [("SW1A 1AA", "SW"), ("m1 1ae", "M"), ("B33 8TH", "B"), ("EC1A 1BB", "EC")],
    )
    def test_postcode_area(self, postcode, area):
        assert postcode_area(postcode) == area

    @pytest.mark.parametrize("postcode", ["", "   ", "123 ABC", "ABC1 2DE"])
    def test_unparsable_area(self, postcode):
        assert postcode_area(postcode) is None

    def test_two_letter_area(self):
        assert region_for_postcode("SW1A 1AA") == "South West London"

    def test_one_letter_area(self):
        assert region_for_postcode("M1 1AE") == "Manchester"

    def test_two_letter_area_does_not_fall_back_to_first_letter(self):
        # BT is Belfast, not Birmingham
        assert region_for_postcode("BT1 5GS") == OTHER_REGION

    def test_unknown_is_other(self):
        assert region_for_postcode("ZZ9 9ZZ") == OTHER_REGION
        assert region_for_postcode("") == OTHER_REGION


class TestCheapestByRegion:
    def test_min_per_region(self, trio):
        regions = cheapest_by_region(trio, [E10])
        assert [(r.region, r.cheapest[E10], r.station_count) for r in regions] == [
            ("Manchester", 999.0, 1),
            ("South West London", 135.0, 2),
        ]

    def test_other_excluded(self, make_station):
        stations = [
            make_station("x-1", postcode="ZZ1 1ZZ", prices={E10: 100.0}),
            make_station("x-2", postcode="LS1 4AP", prices={E10: 150.0}),
        ]
        regions = cheapest_by_region(stations)
        assert [r.region for r in regions] == ["Leeds"]

    def test_regions_without_reporting_stations_excluded(self, make_station):
        stations = [
            make_station("x-1", postcode="LS1 4AP", prices={B7: 150.0}),
            make_station("x-2", postcode="YO1 7HH", prices={E10: 140.0}),
        ]
        assert [r.region for r in cheapest_by_region(stations, [E10])] == ["York"]

    def test_fuel_types_independent(self, make_station):
        stations = [
            make_station("x-1", postcode="LS1 4AP", prices={E10: 140.0, B7: 155.0}),
            make_station("x-2", postcode="LS2 9JT", prices={E10: 145.0, B7: 150.0}),
        ]
        [leeds] = cheapest_by_region(stations)
        assert leeds.cheapest == {E10: 140.0, B7: 150.0}

    def test_empty(self):
        assert cheapest_by_region([]) == []


class TestNationalAverage:
    def test_rounded_mean(self, trio):
        # (135 + 140 + 999) / 3 = 424.67
        assert national_average(trio, [E10]) == {E10: 425}

    def test_half_rounds_up(self, make_station):
        stations = [
            make_station("x-1", prices={E10: 135.0}),
            make_station("x-2", prices={E10: 140.0}),
        ]
        assert national_average(stations, [E10])[E10] == 138

    def test_no_samples_is_none(self, trio):
        assert national_average(trio, [B7]) == {B7: None}

    def test_all_fuel_types_by_default(self, trio):
        averages = national_average(trio)
        assert set(averages) == set(FuelType)

    def test_deterministic(self, trio):
        assert national_average(trio) == national_average(list(trio))


class TestRanking:
    def test_cheapest_national(self, trio):
        best = cheapest_national(trio, E10)
        assert best.station.site_id == "a-1"
        assert best.price == 135.0

    def test_cheapest_national_none(self, trio):
        assert cheapest_national(trio, B7) is None

    def test_top_n(self, trio):
        assert [r.price for r in top_n_cheapest(trio, E10, 2)] == [135.0, 140.0]

    def test_top_n_ties_keep_input_order(self, make_station):
        stations = [
            make_station("x-1", prices={E10: 140.0}),
            make_station("x-2", prices={E10: 130.0}),
            make_station("x-3", prices={E10: 140.0}),
        ]
        ranked = top_n_cheapest(stations, E10, 3)
        assert [r.station.site_id for r in ranked] == ["x-2", "x-1", "x-3"]

    def test_top_n_skips_non_reporting(self, make_station):
        stations = [make_station("x-1", prices={B7: 150.0}), make_station("x-2", prices={E10: 1.0})]
        assert [r.station.site_id for r in top_n_cheapest(stations, E10, 5)] == ["x-2"]

    def test_top_zero(self, trio):
        assert top_n_cheapest(trio, E10, 0) == []


class TestGeo:
    def test_haversine_zero(self):
        assert haversine_km(51.5, -0.1, 51.5, -0.1) == 0.0

    def test_haversine_london_manchester(self):
        # Roughly 262 km as the crow flies
        assert haversine_km(51.5074, -0.1278, 53.4808, -2.2426) == pytest.approx(262, abs=3)

    def test_mappable_excludes_missing_and_out_of_bounds(self, make_station):
        stations = [
            make_station("x-1"),
            make_station("x-2", location=None),
            make_station("x-3", location=Location(latitude=0.0, longitude=0.0)),
        ]
        assert [s.site_id for s in mappable_stations(stations)] == ["x-1"]

    def test_nearby_filters_and_sorts(self, make_station):
        here = (51.5007, -0.1246)
        stations = [
            make_station("near-dear", location=Location(latitude=51.501, longitude=-0.125),
                         prices={E10: 150.0}),
            make_station("near-cheap", location=Location(latitude=51.51, longitude=-0.13),
                         prices={E10: 130.0}),
            make_station("far-cheapest", location=Location(latitude=53.48, longitude=-2.24),
                         prices={E10: 100.0}),
            make_station("no-e10", location=Location(latitude=51.5, longitude=-0.12),
                         prices={B7: 120.0}),
            make_station("no-location", location=None, prices={E10: 90.0}),
        ]

        ranked = nearby_stations(stations, *here, radius_km=5, fuel_type=E10, limit=10)

        assert [r.station.site_id for r in ranked] == ["near-cheap", "near-dear"]
        assert all(r.distance_km is not None and r.distance_km <= 5 for r in ranked)

    def test_nearby_price_ties_broken_by_distance(self, make_station):
        stations = [
            make_station("further", location=Location(latitude=51.52, longitude=-0.12),
                         prices={E10: 130.0}),
            make_station("closer", location=Location(latitude=51.501, longitude=-0.12),
                         prices={E10: 130.0}),
        ]
        ranked = nearby_stations(stations, 51.5, -0.12, radius_km=10, fuel_type=E10)
        assert [r.station.site_id for r in ranked] == ["closer", "further"]

    def test_nearby_limit(self, trio):
        ranked = nearby_stations(trio, 51.5, -0.14, radius_km=500, fuel_type=E10, limit=1)
        assert len(ranked) == 1


class TestPriceSummary:
    def test_summary(self, trio):
        summary = price_summary(trio)
        assert summary.station_count == 3
        assert summary.reporting[E10] == 3
        assert summary.reporting[B7] == 0
        assert summary.average[E10] == 425
        assert summary.average[B7] is None
        assert summary.cheapest[E10].station.site_id == "a-1"
        assert summary.cheapest[B7] is None

    def test_empty(self):
        summary = price_summary([])
        assert summary.station_count == 0
        assert all(v is None for v in summary.average.values())
