# -------------------------
# evmap configuration
# -------------------------
# Paths, CRS, sampling thresholds and tippecanoe profiles.
# Everything path-like can be overridden with an EVMAP_* environment variable.

import os
from dataclasses import dataclass
from typing import Optional, Tuple

BASE_DIR = os.environ.get("EVMAP_BASE_DIR", os.getcwd())
OUTPUT_DIR = os.environ.get("EVMAP_OUTPUT_DIR", os.path.join(BASE_DIR, "output"))
DATA_DIR = os.environ.get("EVMAP_DATA_DIR", os.path.join(BASE_DIR, "data"))
PMTILES_DIR = os.environ.get("EVMAP_PMTILES_DIR", os.path.join(BASE_DIR, "web", "pmtiles"))

# jsDelivr honours Range requests; GitHub Pages/raw release assets do not.
PMTILES_BASE_URL = os.environ.get(
    "EVMAP_PMTILES_BASE_URL",
    "https://cdn.jsdelivr.net/gh/wangzhao0217/zev-up.github.io@53a8b59/pmtiles",
)

# Overlay inputs
CAR_AVAILABILITY_GPKG = os.path.join(
    DATA_DIR,
    "demographic_data",
    "scotland_oa_2011_census_Accommodation_type_by_car_or_van_availability_"
    "by_number_of_people_aged_17_or_over_in_household_scotland.gpkg",
)
EV_DISTRIBUTION_GPKG = os.path.join(DATA_DIR, "mot", "ev_distribution.gpkg")
CHARGERS_GPKG = os.path.join(DATA_DIR, "chargers", "chargers.gpkg")

# CRS
FALLBACK_CRS = "EPSG:27700"  # British National Grid
TARGET_CRS = "EPSG:4326"

# Line-layer sampling: (size threshold in GiB, rate), largest first.
SAMPLE_SEED = 42
SAMPLE_THRESHOLDS_GB: Tuple[Tuple[float, float], ...] = (
    (10.0, 0.01),
    (3.0, 0.03),
    (1.0, 0.05),
    (0.5, 0.10),
    (0.1, 0.15),
)
DEFAULT_LINE_SAMPLE_RATE = 0.15

# tippecanoe
TIPPECANOE_BIN = os.environ.get("EVMAP_TIPPECANOE", "tippecanoe")
_timeout = os.environ.get("EVMAP_TIPPECANOE_TIMEOUT", "").strip()
TIPPECANOE_TIMEOUT: Optional[float] = float(_timeout) if _timeout else None


@dataclass(frozen=True)
class TileProfile:
    name: str
    tippecanoe_args: Tuple[str, ...]
    tolerance: Optional[float]  # degrees; None disables simplification
    preserve_topology: bool = True


_DENSE = (
    "--coalesce-densest-as-needed",
    "--drop-densest-as-needed",
    "--extend-zooms-if-still-dropping",
    "--simplification=10",
)

PROFILES = {
    "polygon": TileProfile(
        "polygon",
        ("-Z5", "-z12") + _DENSE + (
            "--detect-shared-borders",
            "--no-tile-size-limit",
            "--no-feature-limit",
        ),
        tolerance=0.0005,
        preserve_topology=True,
    ),
    # Regeneration runs for archives absent from the first pass
    "polygon_missing": TileProfile(
        "polygon_missing",
        ("-Z5", "-z12") + _DENSE,
        tolerance=0.0005,
        preserve_topology=True,
    ),
    "line": TileProfile(
        "line",
        ("-Z6", "-z12") + _DENSE + ("--no-tile-size-limit", "--no-feature-limit"),
        tolerance=0.001,
        preserve_topology=False,
    ),
    # Used when re-running individual heavy line layers
    "line_compact": TileProfile(
        "line_compact",
        ("-Z8", "-z14", "--drop-densest-as-needed", "--extend-zooms-if-still-dropping"),
        tolerance=0.0005,
        preserve_topology=False,
    ),
    "point": TileProfile(
        "point",
        ("-Z4", "-z14", "--drop-densest-as-needed", "--extend-zooms-if-still-dropping", "-r1"),
        tolerance=None,
    ),
    "overlay_coarse": TileProfile(
        "overlay_coarse",
        ("-Z5", "-z12") + _DENSE + (
            "--detect-shared-borders",
            "--no-tile-size-limit",
            "--no-feature-limit",
        ),
        tolerance=0.001,
        preserve_topology=True,
    ),
}

# API
API_HOST = os.environ.get("EVMAP_API_HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", 5174))
CORS_ORIGINS = [o.strip() for o in os.environ.get("EVMAP_CORS_ORIGINS", "*").split(",") if o.strip()]
