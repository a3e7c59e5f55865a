"""
Convert one analysis GeoPackage into a PMTiles archive.

    gpkg -> first layer -> stage columns -> (sample lines) -> EPSG:4326
         -> make_valid -> simplify -> make_valid -> tippecanoe -> .pmtiles

The archive is written to `{output_dir}/{output_name}.pmtiles` and its
single tile layer is named `output_name`, which the viewer uses as the
source-layer.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Optional

import geopandas as gpd

from . import catalog, config
from .config import TileProfile
from .errors import LayerReadError
from .geometry_utils import prepare_geometries, select_stage_columns
from .sampling import SampleStats, sample_rate_for_size, sample_rows, GIB
from .tiles import MB, archive_size_mb, compile_archive

logger = logging.getLogger(__name__)

CREATED = "created"
FAILED = "failed"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class ConversionResult:
    name: str
    source: str
    status: str
    output: Optional[str] = None
    size_bytes: int = 0
    features: int = 0
    columns: int = 0
    sample: Optional[SampleStats] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (CREATED, SKIPPED)

    @property
    def size_mb(self) -> float:
        return self.size_bytes / MB


def output_name_for(region: str, stage: str) -> str:
    return catalog.archive_key(region.lower(), stage)


def first_layer_name(gpkg_path: str) -> str:
    layers = gpd.list_layers(gpkg_path)
    if len(layers) == 0:
        raise LayerReadError(f"No layers found in {os.path.basename(gpkg_path)}")
    return str(layers["name"].iloc[0])


def read_first_layer(gpkg_path: str) -> gpd.GeoDataFrame:
    return gpd.read_file(gpkg_path, layer=first_layer_name(gpkg_path))


def profile_for_stage(stage: Optional[str]) -> TileProfile:
    st = catalog.get_stage(stage) if stage else None
    if st is not None and st.is_line:
        return config.PROFILES["line"]
    return config.PROFILES["polygon"]


def compile_frame(
    gdf: gpd.GeoDataFrame,
    output_name: str,
    profile: TileProfile,
    source: str,
    output_dir: Optional[str] = None,
    fallback_crs: str = config.FALLBACK_CRS,
    sample: Optional[SampleStats] = None,
    timeout: Optional[float] = config.TIPPECANOE_TIMEOUT,
) -> ConversionResult:
    """Prepare geometries and compile an in-memory frame."""
    output_dir = output_dir or config.PMTILES_DIR
    gdf = prepare_geometries(gdf, profile, fallback_crs)
    n_features, n_cols = len(gdf), len(gdf.columns)
    logger.info(f"  Features: {n_features}, Columns: {n_cols}")

    output_path = os.path.join(output_dir, f"{output_name}.pmtiles")
    size = compile_archive(gdf, output_path, output_name, profile, timeout=timeout)

    result = ConversionResult(
        name=output_name,
        source=source,
        status=CREATED,
        output=output_path,
        features=n_features,
        columns=n_cols,
        sample=sample,
    )
    if size is None:
        result.status = FAILED
        result.message = f"Failed to create {output_path}"
        logger.error(f"  -> ERROR: {result.message}")
        return result

    result.size_bytes = size
    logger.info(f"  -> Created: {os.path.basename(output_path)} ({archive_size_mb(output_path):.1f} MB)")
    return result


def convert_layer(
    gpkg_path: str,
    output_name: str,
    stage: Optional[str],
    profile: Optional[TileProfile] = None,
    columns: Optional[Iterable[str]] = None,
    sample_rate: Optional[float] = None,
    output_dir: Optional[str] = None,
    timeout: Optional[float] = config.TIPPECANOE_TIMEOUT,
) -> ConversionResult:
    """
    Convert `gpkg_path` for `stage` into `{output_dir}/{output_name}.pmtiles`.

    A missing input is reported as skipped. Line stages are subsampled by
    file size unless `sample_rate` is given; polygon stages are never
    sampled. Read, geometry and compiler errors propagate to the caller.
    """
    if not os.path.isfile(gpkg_path):
        logger.info(f"  Skipping {output_name}: file not found")
        return ConversionResult(output_name, gpkg_path, SKIPPED, message="file not found")

    st = catalog.get_stage(stage) if stage else None
    is_line = st is not None and st.is_line
    profile = profile or profile_for_stage(stage)
    logger.info(f"Converting {'lines' if is_line else 'polygon'}: {output_name} ({os.path.basename(gpkg_path)})")

    size_bytes = os.path.getsize(gpkg_path)
    if is_line:
        logger.info(f"  File size: {size_bytes / GIB:.2f} GB")

    gdf = read_first_layer(gpkg_path)
    gdf = select_stage_columns(gdf, stage, columns)

    sample = None
    if is_line:
        rate = sample_rate if sample_rate is not None else sample_rate_for_size(size_bytes)
        if rate < 1.0:
            gdf, sample = sample_rows(gdf, rate)
            logger.info(f"  {sample.describe()}")

    return compile_frame(
        gdf,
        output_name,
        profile,
        source=gpkg_path,
        output_dir=output_dir,
        sample=sample,
        timeout=timeout,
    )
