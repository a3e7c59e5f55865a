"""
Sequential batch conversion with per-item isolation.

Each item is converted on its own; an exception is logged, recorded as an
error result and the batch moves on. Nothing runs concurrently.
"""
from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from tqdm import tqdm

from . import catalog, config
from .config import TileProfile
from .convert import ERROR, FAILED, ConversionResult, convert_layer, output_name_for
from .overlays import convert_car_availability, convert_chargers, convert_ev_distribution
from .tiles import MB, list_archives

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    region: str  # folder name, e.g. "SPT"
    stage: str
    sample_rate: Optional[float] = None
    profile: Optional[str] = None  # key into config.PROFILES

    @property
    def output_name(self) -> str:
        return output_name_for(self.region, self.stage)

    def gpkg_path(self, input_dir: str) -> str:
        return os.path.join(input_dir, self.region, f"{self.stage}.gpkg")

    def tile_profile(self) -> Optional[TileProfile]:
        return config.PROFILES[self.profile] if self.profile else None


def _compact_line(region: str, stage: str, rate: float) -> BatchItem:
    return BatchItem(region, stage, sample_rate=rate, profile="line_compact")


# Archives that were absent from the first full run
MISSING_ITEMS: List[BatchItem] = (
    [BatchItem("SPT", s, profile="polygon_missing") for s in catalog.POLYGON_STAGES]
    + [BatchItem("SWESTRANS", s, profile="polygon_missing") for s in catalog.POLYGON_STAGES]
    + [
        _compact_line("SWESTRANS", "trip_purpose", config.DEFAULT_LINE_SAMPLE_RATE),
        _compact_line("SWESTRANS", "range_feasibility", 0.05),
    ]
    + [BatchItem("Tactran", s, profile="polygon_missing") for s in catalog.POLYGON_STAGES]
)

# Line layers whose archives came out too large to serve
LARGE_LINE_ITEMS: List[BatchItem] = [
    _compact_line("SESTRAN", "trip_purpose", 0.15),
    _compact_line("SESTRAN", "range_feasibility", 0.05),
    _compact_line("SPT", "trip_purpose", 0.10),
    _compact_line("SPT", "range_feasibility", 0.05),
    _compact_line("Tactran", "trip_purpose", 0.15),
    _compact_line("Tactran", "range_feasibility", 0.10),
]


@dataclass
class BatchReport:
    output_dir: str
    results: List[ConversionResult] = field(default_factory=list)

    def add(self, result: ConversionResult) -> None:
        self.results.append(result)

    @property
    def counts(self) -> Counter:
        return Counter(r.status for r in self.results)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def summary_lines(self) -> List[str]:
        archives = list_archives(self.output_dir)
        total_mb = sum(size for _, size in archives) / MB
        counts = self.counts
        lines = [
            "Conversion Summary",
            "  " + ", ".join(f"{k}: {counts[k]}" for k in sorted(counts)) if counts else "  no items",
            f"Created {len(archives)} PMTiles files",
            f"Total size: {total_mb:.1f} MB",
        ]
        lines += [f"  {name} ({size / MB:.1f} MB)" for name, size in archives]
        for r in self.results:
            if r.status in (ERROR, FAILED):
                lines.append(f"  ! {r.name}: {r.message}")
        return lines

    def log_summary(self) -> None:
        logger.info("=" * 40)
        for line in self.summary_lines():
            logger.info(line)


def discover_items(input_dir: str) -> List[BatchItem]:
    """Every region x stage under `input_dir`; polygon stages before line stages."""
    items: List[BatchItem] = []
    for region in catalog.REGIONS:
        region_dir = os.path.join(input_dir, region.source_dir)
        if not os.path.isdir(region_dir):
            logger.info(f"=== {region.source_dir}: skipping, directory not found")
            continue
        for stage in catalog.POLYGON_STAGES + catalog.LINE_STAGES:
            items.append(BatchItem(region.source_dir, stage))
    return items


def _guarded(name: str, source: str, fn: Callable[[], ConversionResult]) -> ConversionResult:
    try:
        return fn()
    except Exception as e:
        logger.error(f"  ERROR: {name}: {e}")
        return ConversionResult(name, source, ERROR, message=str(e))


def run_items(
    items: Iterable[BatchItem],
    input_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    progress: bool = True,
) -> BatchReport:
    input_dir = input_dir or config.OUTPUT_DIR
    output_dir = output_dir or config.PMTILES_DIR
    os.makedirs(output_dir, exist_ok=True)
    report = BatchReport(output_dir)

    items = list(items)
    for item in tqdm(items, desc="[convert]", unit="layer", disable=not progress):
        path = item.gpkg_path(input_dir)
        result = _guarded(
            item.output_name,
            path,
            lambda: convert_layer(
                path,
                item.output_name,
                item.stage,
                profile=item.tile_profile(),
                sample_rate=item.sample_rate,
                output_dir=output_dir,
            ),
        )
        report.add(result)
    return report


def convert_all(input_dir: Optional[str] = None, output_dir: Optional[str] = None,
                progress: bool = True) -> BatchReport:
    input_dir = input_dir or config.OUTPUT_DIR
    logger.info("PMTiles conversion")
    logger.info(f"Output directory: {output_dir or config.PMTILES_DIR}")
    report = run_items(discover_items(input_dir), input_dir, output_dir, progress)
    report.log_summary()
    return report


def convert_missing(input_dir: Optional[str] = None, output_dir: Optional[str] = None,
                    progress: bool = True) -> BatchReport:
    logger.info("Converting missing PMTiles")
    report = run_items(MISSING_ITEMS, input_dir, output_dir, progress)
    report.log_summary()
    return report


def reduce_large(input_dir: Optional[str] = None, output_dir: Optional[str] = None,
                 progress: bool = True) -> BatchReport:
    logger.info("Reducing PMTiles file sizes")
    report = run_items(LARGE_LINE_ITEMS, input_dir, output_dir, progress)
    report.log_summary()
    return report


def convert_overlays(data_dir: Optional[str] = None, output_dir: Optional[str] = None) -> BatchReport:
    output_dir = output_dir or config.PMTILES_DIR
    os.makedirs(output_dir, exist_ok=True)
    report = BatchReport(output_dir)

    if data_dir is None:
        paths = {
            "car_availability": config.CAR_AVAILABILITY_GPKG,
            "ev_distribution": config.EV_DISTRIBUTION_GPKG,
            "chargers": config.CHARGERS_GPKG,
        }
    else:
        paths = {
            "car_availability": os.path.join(data_dir, "demographic_data",
                                             os.path.basename(config.CAR_AVAILABILITY_GPKG)),
            "ev_distribution": os.path.join(data_dir, "mot", "ev_distribution.gpkg"),
            "chargers": os.path.join(data_dir, "chargers", "chargers.gpkg"),
        }

    converters = (
        ("car_availability", convert_car_availability),
        ("ev_distribution", convert_ev_distribution),
        ("chargers", convert_chargers),
    )
    for name, fn in converters:
        path = paths[name]
        report.add(_guarded(name, path, lambda: fn(path, output_dir=output_dir)))

    report.log_summary()
    return report
