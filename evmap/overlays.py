"""
Scotland-wide overlay archives.

These are not tied to a region or stage:
- car_availability: 2011 Census household car/van availability, reduced
  to a handful of summary columns.
- ev_distribution: EV registrations by postcode area.
- chargers: public charge point locations.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Dict, Optional

import numpy as np
import pandas as pd
import geopandas as gpd

from . import config
from .convert import SKIPPED, ConversionResult, compile_frame, read_first_layer

logger = logging.getLogger(__name__)

# Census column names, with every non-alphanumeric run normalised to "."
CAR_COLUMN_PATTERNS: Dict[str, str] = {
    "total_households": r"All\.households\.Total\.All\.households",
    "no_car_households": r"All\.households\.Number\.of\.cars\.or\.vans\.in\.household\.No\.cars\.or\.vans\.All\.households",
    "one_car_households": r"All\.households\.Number\.of\.cars\.or\.vans\.in\.household\.One\.car\.or\.van\.All\.households",
    "multi_car_households": r"All\.households\.Number\.of\.cars\.or\.vans\.in\.household\.Two\.or\.more\.cars\.or\.vans\.All\.households",
}

CAR_SUMMARY_COLUMNS = [
    "geo_code",
    "total_households",
    "no_car_households",
    "one_car_households",
    "multi_car_households",
    "no_car_pct",
    "one_car_pct",
    "multi_car_pct",
    "car_ownership_rate",
]


def _normalise(name: str) -> str:
    return re.sub(r"[^0-9A-Za-z]+", ".", str(name)).strip(".")


def _find_column(columns, pattern: str) -> Optional[str]:
    rx = re.compile(pattern)
    for c in columns:
        if rx.search(_normalise(c)):
            return c
    return None


def summarise_car_availability(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Reduce the census table to household counts and shares per output area.

    Counts are stored as strings in the source, so they are coerced to
    numbers. Shares are 0 where an area has no households.
    """
    geom_col = gdf.geometry.name
    out = gdf.copy()

    for target, pattern in CAR_COLUMN_PATTERNS.items():
        src = _find_column(gdf.columns, pattern)
        if src is not None:
            out[target] = pd.to_numeric(gdf[src], errors="coerce")
        else:
            logger.warning(f"  Column for {target} not found")

    if "total_households" in out.columns:
        total = out["total_households"]
        has_households = total > 0
        for count_col, pct_col in (
            ("no_car_households", "no_car_pct"),
            ("one_car_households", "one_car_pct"),
            ("multi_car_households", "multi_car_pct"),
        ):
            if count_col in out.columns:
                out[pct_col] = np.where(has_households, out[count_col] / total.where(has_households), 0.0)
        if "no_car_pct" in out.columns:
            out["car_ownership_rate"] = 1 - out["no_car_pct"]

    keep = [c for c in CAR_SUMMARY_COLUMNS if c in out.columns]
    return out[keep + [geom_col]]


def _missing(name: str, path: str) -> ConversionResult:
    logger.error(f"  ERROR: File not found: {path}")
    return ConversionResult(name, path, SKIPPED, message="file not found")


def convert_car_availability(gpkg_path: str = config.CAR_AVAILABILITY_GPKG,
                             output_dir: Optional[str] = None) -> ConversionResult:
    logger.info("=== Converting Car/Van Availability Data ===")
    if not os.path.isfile(gpkg_path):
        return _missing("car_availability", gpkg_path)

    logger.info(f"  Reading: {os.path.basename(gpkg_path)}")
    gdf = summarise_car_availability(read_first_layer(gpkg_path))
    # Census output areas ship without a CRS but are already lon/lat
    return compile_frame(
        gdf,
        "car_availability",
        config.PROFILES["polygon"],
        source=gpkg_path,
        output_dir=output_dir,
        fallback_crs=config.TARGET_CRS,
    )


def convert_ev_distribution(gpkg_path: str = config.EV_DISTRIBUTION_GPKG,
                            output_dir: Optional[str] = None) -> ConversionResult:
    logger.info("=== Converting EV Distribution Data ===")
    if not os.path.isfile(gpkg_path):
        return _missing("ev_distribution", gpkg_path)

    logger.info(f"  Reading: {os.path.basename(gpkg_path)}")
    gdf = read_first_layer(gpkg_path)
    return compile_frame(
        gdf,
        "ev_distribution",
        config.PROFILES["overlay_coarse"],
        source=gpkg_path,
        output_dir=output_dir,
    )


def convert_chargers(gpkg_path: str = config.CHARGERS_GPKG,
                     output_dir: Optional[str] = None) -> ConversionResult:
    logger.info("=== Converting Charger Locations ===")
    if not os.path.isfile(gpkg_path):
        return _missing("chargers", gpkg_path)

    gdf = read_first_layer(gpkg_path)
    return compile_frame(
        gdf,
        "chargers",
        config.PROFILES["point"],
        source=gpkg_path,
        output_dir=output_dir,
    )
