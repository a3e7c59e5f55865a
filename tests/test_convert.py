"""
Test GeoPackage -> PMTiles Conversion

Builds small GeoPackages on disk and converts them with a fake
tippecanoe, checking column slicing, sampling and result reporting.
"""
import math
import os
import subprocess

import pandas as pd
import geopandas as gpd
import pytest
from shapely.geometry import LineString, Polygon

from evmap import tiles
from evmap.convert import CREATED, FAILED, SKIPPED, convert_layer, first_layer_name, output_name_for
from evmap.errors import TileBuildError
from evmap.sampling import GIB


def write_polygons(path, n_attr=440, n_rows=4):
    df = pd.DataFrame({f"c{i}": range(n_rows) for i in range(1, n_attr + 1)})
    geoms = [
        Polygon([(300000 + k * 2000, 700000), (301000 + k * 2000, 700000),
                 (301000 + k * 2000, 701000), (300000 + k * 2000, 701000)])
        for k in range(n_rows)
    ]
    gpd.GeoDataFrame(df, geometry=geoms, crs="EPSG:27700").to_file(path, driver="GPKG", layer="zones")
    return path


def write_lines(path, n_rows=250, n_attr=12):
    df = pd.DataFrame({f"c{i}": range(n_rows) for i in range(1, n_attr + 1)})
    geoms = [LineString([(300000 + k * 100, 700000), (305000 + k * 100, 705000)]) for k in range(n_rows)]
    gpd.GeoDataFrame(df, geometry=geoms, crs="EPSG:27700").to_file(path, driver="GPKG", layer="trips")
    return path


class TestConvertPolygon:
    """Polygon stage conversion."""

    def test_creates_archive_named_after_output(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = write_polygons(tmp_path / "adoption_propensity.gpkg")

        result = convert_layer(str(gpkg), "zettrans_adoption_propensity", "adoption_propensity",
                               output_dir=str(pmtiles_dir))

        assert result.status == CREATED
        assert result.output == os.path.join(str(pmtiles_dir), "zettrans_adoption_propensity.pmtiles")
        assert os.path.isfile(result.output)
        assert result.size_bytes == os.path.getsize(result.output)
        assert fake_tippecanoe.layer_names() == ["zettrans_adoption_propensity"]
        assert result.sample is None

    def test_column_range_clipped_to_available(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        # 440 attributes + geometry = 441 columns; (418, 438) fits
        gpkg = write_polygons(tmp_path / "adoption_propensity.gpkg")
        result = convert_layer(str(gpkg), "x", "adoption_propensity", output_dir=str(pmtiles_dir))
        assert result.columns == 21 + 1
        assert result.features == 4

        # ev_assignment (418, 451) runs past the 441 columns without error
        result = convert_layer(str(gpkg), "y", "ev_assignment_replaceable_only", output_dir=str(pmtiles_dir))
        assert result.status == CREATED
        assert result.columns == (441 - 418 + 1)

    def test_missing_input_is_skipped(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        result = convert_layer(str(tmp_path / "nope.gpkg"), "x", "adoption_propensity", output_dir=str(pmtiles_dir))
        assert result.status == SKIPPED
        assert fake_tippecanoe.calls == []

    def test_no_archive_reports_failure(self, tmp_path, pmtiles_dir, monkeypatch):
        gpkg = write_polygons(tmp_path / "p.gpkg", n_attr=5)
        monkeypatch.setattr(
            tiles.subprocess, "run",
            lambda cmd, **kw: subprocess.CompletedProcess(cmd, 0, stdout="", stderr=""),
        )
        result = convert_layer(str(gpkg), "x", "adoption_propensity", output_dir=str(pmtiles_dir))
        assert result.status == FAILED
        assert "Failed to create" in result.message

    def test_compiler_error_propagates(self, tmp_path, pmtiles_dir, monkeypatch):
        gpkg = write_polygons(tmp_path / "p.gpkg", n_attr=5)
        monkeypatch.setattr(
            tiles.subprocess, "run",
            lambda cmd, **kw: subprocess.CompletedProcess(cmd, 2, stdout="", stderr="bad input"),
        )
        with pytest.raises(TileBuildError, match="bad input"):
            convert_layer(str(gpkg), "x", "adoption_propensity", output_dir=str(pmtiles_dir))


class TestConvertLine:
    """Line stage conversion and sampling."""

    def test_small_file_is_not_sampled(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = write_lines(tmp_path / "range_feasibility.gpkg")
        result = convert_layer(str(gpkg), "zettrans_range_feasibility", "range_feasibility",
                               output_dir=str(pmtiles_dir))
        assert result.status == CREATED
        assert result.sample is None
        assert result.features == 250
        # (3, 10) keeps c3..c10 plus geometry
        assert result.columns == 9

    def test_twelve_gigabyte_file_samples_one_percent(self, tmp_path, pmtiles_dir, fake_tippecanoe, monkeypatch):
        gpkg = write_lines(tmp_path / "range_feasibility.gpkg")
        real_getsize = os.path.getsize

        def fake_getsize(p):
            if str(p).endswith("range_feasibility.gpkg"):
                return 12 * GIB
            return real_getsize(p)

        monkeypatch.setattr(os.path, "getsize", fake_getsize)

        result = convert_layer(str(gpkg), "zettrans_range_feasibility", "range_feasibility",
                               output_dir=str(pmtiles_dir))

        assert result.sample.rate == 0.01
        assert result.sample.sampled == math.ceil(250 * 0.01)
        assert result.features == 3

    def test_explicit_rate_overrides_size(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = write_lines(tmp_path / "trip_purpose.gpkg", n_rows=40, n_attr=30)
        result = convert_layer(str(gpkg), "spt_trip_purpose", "trip_purpose",
                               sample_rate=0.15, output_dir=str(pmtiles_dir))
        assert result.sample.sampled == 6
        assert result.features == 6

    def test_sampling_is_repeatable(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        gpkg = write_lines(tmp_path / "trip_purpose.gpkg", n_rows=100, n_attr=30)
        a = convert_layer(str(gpkg), "a", "trip_purpose", sample_rate=0.1, output_dir=str(pmtiles_dir))
        b = convert_layer(str(gpkg), "b", "trip_purpose", sample_rate=0.1, output_dir=str(pmtiles_dir))
        assert a.sample == b.sample


class TestNaming:
    def test_output_name_lowercases_region(self):
        assert output_name_for("SWESTRANS", "trip_purpose") == "swestrans_trip_purpose"

    def test_first_layer(self, tmp_path):
        gpkg = write_polygons(tmp_path / "p.gpkg", n_attr=2)
        assert first_layer_name(str(gpkg)) == "zones"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
