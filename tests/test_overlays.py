"""
Test Overlay Preparation

Validates the census car availability summary and overlay conversion.
"""
import geopandas as gpd
import pytest
from shapely.geometry import Point, Polygon

from evmap.convert import CREATED, SKIPPED
from evmap.overlays import convert_car_availability, convert_chargers, summarise_car_availability

TOTAL = "All.households._Total_All.households"
NO_CAR = "All.households._Number.of.cars.or.vans.in.household..No.cars.or.vans_All.households"
ONE_CAR = "All.households._Number.of.cars.or.vans.in.household..One.car.or.van_All.households"
MULTI_CAR = "All.households._Number.of.cars.or.vans.in.household..Two.or.more.cars.or.vans_All.households"


def census_frame() -> gpd.GeoDataFrame:
    square = Polygon([(-3, 55), (-2.99, 55), (-2.99, 55.01), (-3, 55.01)])
    return gpd.GeoDataFrame(
        {
            "geo_code": ["S00000001", "S00000002"],
            TOTAL: ["100", "0"],
            NO_CAR: ["25", "0"],
            ONE_CAR: ["50", "0"],
            MULTI_CAR: ["25", "0"],
            "unrelated": ["x", "y"],
        },
        geometry=[square, square],
        crs="EPSG:4326",
    )


class TestCarAvailabilitySummary:
    """Household counts and shares."""

    def test_shares_and_ownership_rate(self):
        out = summarise_car_availability(census_frame())
        row = out.iloc[0]

        assert row["total_households"] == 100
        assert row["no_car_pct"] == pytest.approx(0.25)
        assert row["one_car_pct"] == pytest.approx(0.5)
        assert row["multi_car_pct"] == pytest.approx(0.25)
        assert row["car_ownership_rate"] == pytest.approx(0.75)

    def test_zero_households_give_zero_shares(self):
        row = summarise_car_availability(census_frame()).iloc[1]
        assert row["no_car_pct"] == 0
        assert row["car_ownership_rate"] == 1

    def test_only_summary_columns_kept(self):
        out = summarise_car_availability(census_frame())
        assert "unrelated" not in out.columns
        assert TOTAL not in out.columns
        assert list(out.columns)[-1] == "geometry"
        assert "geo_code" in out.columns


class TestOverlayConversion:
    def test_car_availability_archive(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = tmp_path / "census.gpkg"
        census_frame().to_file(gpkg, driver="GPKG")

        result = convert_car_availability(str(gpkg), output_dir=str(pmtiles_dir))

        assert result.status == CREATED
        assert fake_tippecanoe.layer_names() == ["car_availability"]

    def test_chargers_use_point_profile(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = tmp_path / "chargers.gpkg"
        gpd.GeoDataFrame({"name": ["a"]}, geometry=[Point(326000, 673500)], crs="EPSG:27700").to_file(
            gpkg, driver="GPKG"
        )

        result = convert_chargers(str(gpkg), output_dir=str(pmtiles_dir))

        assert result.status == CREATED
        assert "-r1" in fake_tippecanoe.calls[0]

    def test_missing_overlay_input(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        result = convert_car_availability(str(tmp_path / "none.gpkg"), output_dir=str(pmtiles_dir))
        assert result.status == SKIPPED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
