"""
Geometry hygiene for the conversion pipeline.

Column slicing, CRS normalisation, validity repair and simplification of
GeoDataFrames read from the analysis GeoPackages.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import geopandas as gpd

from . import catalog, config
from .config import TileProfile

logger = logging.getLogger(__name__)


def clip_column_range(column_range: Tuple[int, int], n_cols: int) -> Tuple[int, int]:
    """Clamp a 1-based inclusive (start, end) range to the available columns."""
    start, end = column_range
    return min(start, n_cols), min(end, n_cols)


def select_stage_columns(
    gdf: gpd.GeoDataFrame,
    stage: Optional[str],
    columns: Optional[Iterable[str]] = None,
) -> gpd.GeoDataFrame:
    """
    Keep the attribute columns configured for `stage`, plus geometry.

    Explicit `columns` win over the stage range; names not present in the
    frame are ignored. Unknown stages (or stages without a range) keep
    everything. Range positions count every column, geometry included.
    """
    geom_col = gdf.geometry.name

    if columns is not None:
        keep = [c for c in columns if c in gdf.columns and c != geom_col]
        logger.info(f"  Kept {len(keep)} columns: {', '.join(keep)}")
        return gdf[keep + [geom_col]]

    st = catalog.get_stage(stage) if stage else None
    if st is None or st.column_range is None:
        return gdf

    all_cols: List[str] = list(gdf.columns)
    start, end = clip_column_range(st.column_range, len(all_cols))
    keep = all_cols[start - 1:end]
    if geom_col not in keep:
        keep.append(geom_col)
    logger.info(f"  Kept columns {start}-{end}")
    return gdf[keep]


def ensure_geographic(gdf: gpd.GeoDataFrame, fallback_crs: str = config.FALLBACK_CRS) -> gpd.GeoDataFrame:
    """Assign `fallback_crs` when no CRS is set, then reproject to lon/lat."""
    if gdf.crs is None:
        logger.warning(f"  No CRS defined, assuming {fallback_crs}")
        gdf = gdf.set_crs(fallback_crs)
    if gdf.crs.to_epsg() != 4326:
        logger.debug(f"  Transforming from {gdf.crs.to_string()} to {config.TARGET_CRS}")
        gdf = gdf.to_crs(config.TARGET_CRS)
    return gdf


def repair_geometries(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """make_valid, then drop null and empty geometries."""
    gdf = gdf.copy()
    gdf[gdf.geometry.name] = gdf.geometry.make_valid()
    g = gdf.geometry
    return gdf[g.notna() & ~g.is_empty]


def simplify_geometries(
    gdf: gpd.GeoDataFrame,
    tolerance: float,
    preserve_topology: bool = True,
) -> gpd.GeoDataFrame:
    # simplify can produce invalid or empty shapes, so repair again afterwards
    gdf = gdf.copy()
    gdf[gdf.geometry.name] = gdf.geometry.simplify(tolerance, preserve_topology=preserve_topology)
    return repair_geometries(gdf)


def prepare_geometries(
    gdf: gpd.GeoDataFrame,
    profile: TileProfile,
    fallback_crs: str = config.FALLBACK_CRS,
) -> gpd.GeoDataFrame:
    gdf = ensure_geographic(gdf, fallback_crs)
    gdf = repair_geometries(gdf)
    if profile.tolerance:
        gdf = simplify_geometries(gdf, profile.tolerance, profile.preserve_topology)
    return gdf
