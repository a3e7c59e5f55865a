"""
Deterministic row subsampling for large line layers.

The rate is a step function of the GeoPackage size on disk: bigger files
are thinned harder. Sampling is uniform without replacement with a fixed
seed, so repeated runs over the same input publish the same features.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import geopandas as gpd

from . import config

GIB = 1024 ** 3


@dataclass(frozen=True)
class SampleStats:
    original: int
    sampled: int
    rate: float

    def describe(self) -> str:
        return f"Sampled: {self.original} -> {self.sampled} ({self.rate * 100:.0f}%)"


def sample_rate_for_size(size_bytes: int, thresholds=config.SAMPLE_THRESHOLDS_GB) -> float:
    """Rate for the largest threshold (GiB) the size strictly exceeds; 1.0 below all."""
    size_gb = size_bytes / GIB
    for limit_gb, rate in sorted(thresholds, key=lambda t: t[0], reverse=True):
        if size_gb > limit_gb:
            return rate
    return 1.0


def sample_size(n: int, rate: float) -> int:
    if rate >= 1.0:
        return n
    return min(n, math.ceil(n * rate))


def sample_indices(n: int, rate: float, seed: int = config.SAMPLE_SEED) -> np.ndarray:
    """Sorted positional indices of the rows kept at `rate`."""
    k = sample_size(n, rate)
    if k >= n:
        return np.arange(n)
    rng = np.random.default_rng(seed)
    return np.sort(rng.choice(n, size=k, replace=False))


def sample_rows(
    gdf: gpd.GeoDataFrame,
    rate: float,
    seed: int = config.SAMPLE_SEED,
) -> Tuple[gpd.GeoDataFrame, SampleStats]:
    n = len(gdf)
    idx = sample_indices(n, rate, seed)
    return gdf.iloc[idx], SampleStats(original=n, sampled=len(idx), rate=rate)
