"""
Test Batch Conversion

Validates region/stage discovery, per-item isolation and the summary
report.
"""
import os
import subprocess

import pandas as pd
import geopandas as gpd
import pytest
from shapely.geometry import LineString, Polygon

from evmap import batch, tiles
from evmap.batch import LARGE_LINE_ITEMS, MISSING_ITEMS, BatchItem, discover_items, run_items
from evmap.convert import CREATED, ERROR, SKIPPED

REAL_RUN = subprocess.run


def write_stage(root, region, stage, line=False):
    d = root / region
    d.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame({f"c{i}": [1, 2] for i in range(1, 12)})
    if line:
        geoms = [LineString([(300000, 700000), (305000, 705000)]), LineString([(310000, 700000), (315000, 705000)])]
    else:
        geoms = [
            Polygon([(300000, 700000), (301000, 700000), (301000, 701000), (300000, 701000)]),
            Polygon([(302000, 700000), (303000, 700000), (303000, 701000), (302000, 701000)]),
        ]
    path = d / f"{stage}.gpkg"
    gpd.GeoDataFrame(df, geometry=geoms, crs="EPSG:27700").to_file(path, driver="GPKG")
    return path


class TestDiscovery:
    """Region folders x stages."""

    def test_only_existing_region_dirs(self, tmp_path):
        (tmp_path / "ZetTrans").mkdir()
        items = discover_items(str(tmp_path))

        assert {i.region for i in items} == {"ZetTrans"}
        assert len(items) == 7
        # polygon stages come first
        assert [i.stage for i in items][-2:] == ["trip_purpose", "range_feasibility"]

    def test_output_names(self):
        assert BatchItem("ZetTrans", "trip_purpose").output_name == "zettrans_trip_purpose"


class TestRunItems:
    """Sequential runs with per-item isolation."""

    def test_missing_files_are_skipped(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        inputs = tmp_path / "output"
        write_stage(inputs, "ZetTrans", "adoption_propensity")
        write_stage(inputs, "ZetTrans", "trip_purpose", line=True)

        report = batch.convert_all(str(inputs), str(pmtiles_dir), progress=False)

        assert report.counts[CREATED] == 2
        assert report.counts[SKIPPED] == 5
        assert report.ok
        assert sorted(fake_tippecanoe.layer_names()) == ["zettrans_adoption_propensity", "zettrans_trip_purpose"]

    def test_one_failure_does_not_stop_the_batch(self, tmp_path, pmtiles_dir, fake_tippecanoe, monkeypatch):
        inputs = tmp_path / "output"
        write_stage(inputs, "SPT", "adoption_propensity")
        write_stage(inputs, "SPT", "charging_network")

        real = batch.convert_layer

        def flaky(path, name, stage, **kw):
            if stage == "adoption_propensity":
                raise ValueError("Unsupported geometry")
            return real(path, name, stage, **kw)

        monkeypatch.setattr(batch, "convert_layer", flaky)
        items = [BatchItem("SPT", "adoption_propensity"), BatchItem("SPT", "charging_network")]

        report = run_items(items, str(inputs), str(pmtiles_dir), progress=False)

        assert [r.status for r in report.results] == [ERROR, CREATED]
        assert report.results[0].message == "Unsupported geometry"
        assert not report.ok

    @pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh")
    def test_compiler_timeout_does_not_stop_the_batch(self, tmp_path, pmtiles_dir, fake_tippecanoe, monkeypatch):
        inputs = tmp_path / "output"
        write_stage(inputs, "SPT", "adoption_propensity")
        write_stage(inputs, "SPT", "charging_network")
        hang = tmp_path / "hang.sh"
        hang.write_text("#!/bin/sh\necho 'Read 1.00 million features' >&2\nexec sleep 30\n")
        hang.chmod(0o755)

        def run(cmd, **kwargs):
            # the first layer hangs in a real child process; the rest use the fake
            if "spt_adoption_propensity" in cmd:
                return REAL_RUN([str(hang)], **{**kwargs, "timeout": 1})
            return fake_tippecanoe(cmd, **kwargs)

        monkeypatch.setattr(tiles.subprocess, "run", run)
        items = [BatchItem("SPT", "adoption_propensity"), BatchItem("SPT", "charging_network")]

        report = run_items(items, str(inputs), str(pmtiles_dir), progress=False)

        assert [r.status for r in report.results] == [ERROR, CREATED]
        assert "timed out" in report.results[0].message
        assert any("! spt_adoption_propensity" in line for line in report.summary_lines())

    def test_summary_lists_archives(self, tmp_path, pmtiles_dir, fake_tippecanoe):
        inputs = tmp_path / "output"
        write_stage(inputs, "Tactran", "conversion_potential")

        report = run_items([BatchItem("Tactran", "conversion_potential")], str(inputs), str(pmtiles_dir),
                           progress=False)
        lines = report.summary_lines()

        assert "Created 1 PMTiles files" in lines
        assert any("tactran_conversion_potential.pmtiles" in line for line in lines)


class TestStaticLists:
    """The regenerate/reduce item lists."""

    def test_missing_items(self):
        assert len(MISSING_ITEMS) == 17
        swe = {i.stage: i for i in MISSING_ITEMS if i.region == "SWESTRANS"}
        assert swe["range_feasibility"].sample_rate == 0.05
        assert swe["trip_purpose"].sample_rate == 0.15
        assert swe["trip_purpose"].profile == "line_compact"
        assert swe["adoption_propensity"].sample_rate is None

    def test_missing_polygons_use_reduced_flags(self):
        profile = BatchItem("SPT", "adoption_propensity", profile="polygon_missing").tile_profile()
        assert all(i.profile == "polygon_missing" for i in MISSING_ITEMS if i.sample_rate is None)
        assert "--simplification=10" in profile.tippecanoe_args
        assert "--detect-shared-borders" not in profile.tippecanoe_args
        assert "--no-feature-limit" not in profile.tippecanoe_args

    def test_large_items_have_explicit_rates(self):
        assert all(i.sample_rate is not None and i.sample_rate < 1 for i in LARGE_LINE_ITEMS)
        assert {i.stage for i in LARGE_LINE_ITEMS} == {"trip_purpose", "range_feasibility"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
