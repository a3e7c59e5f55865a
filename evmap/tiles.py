"""
tippecanoe wrapper: GeoDataFrame -> GeoJSON interchange -> .pmtiles.

The interchange file lives in a temporary directory that is removed
whether or not the compiler succeeds. Compiler output is captured so
failures carry their diagnostics instead of only a missing archive.
"""
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import List, Optional, Sequence, Tuple

import geopandas as gpd

from . import config
from .config import TileProfile
from .errors import TileBuildError, decode_stream

logger = logging.getLogger(__name__)

MB = 1024 ** 2


def build_tippecanoe_command(
    output_path: str,
    layer: str,
    profile: TileProfile,
    input_path: str,
    binary: str = config.TIPPECANOE_BIN,
) -> List[str]:
    return [
        binary,
        "-o", output_path,
        *profile.tippecanoe_args,
        "-l", layer,
        "--force",
        input_path,
    ]


def write_interchange(gdf: gpd.GeoDataFrame, directory: str, name: str) -> str:
    path = os.path.join(directory, f"{name}.geojson")
    gdf.to_file(path, driver="GeoJSON")
    return path


def run_tippecanoe(cmd: Sequence[str], timeout: Optional[float] = config.TIPPECANOE_TIMEOUT) -> subprocess.CompletedProcess:
    try:
        proc = subprocess.run(list(cmd), capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise TileBuildError(f"Not found: {cmd[0]}", cmd) from e
    except subprocess.TimeoutExpired as e:
        raise TileBuildError(f"{cmd[0]} timed out after {e.timeout}s", cmd, stderr=decode_stream(e.stderr)) from e
    if proc.returncode != 0:
        raise TileBuildError(
            f"{cmd[0]} exited with status {proc.returncode}",
            cmd,
            returncode=proc.returncode,
            stderr=proc.stderr,
        )
    if proc.stderr:
        logger.debug(proc.stderr.strip())
    return proc


def compile_archive(
    gdf: gpd.GeoDataFrame,
    output_path: str,
    layer: str,
    profile: TileProfile,
    timeout: Optional[float] = config.TIPPECANOE_TIMEOUT,
) -> Optional[int]:
    """
    Compile `gdf` into a PMTiles archive whose single layer is named `layer`.

    Returns the archive size in bytes, or None when the compiler exited
    cleanly but left no archive behind. Raises TileBuildError when the
    compiler cannot be run or exits with an error.
    """
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with tempfile.TemporaryDirectory() as td:
        interchange = write_interchange(gdf, td, layer)
        cmd = build_tippecanoe_command(output_path, layer, profile, interchange)
        logger.debug(" ".join(cmd))
        run_tippecanoe(cmd, timeout=timeout)

    if not os.path.isfile(output_path):
        return None
    return os.path.getsize(output_path)


def archive_size_mb(path: str) -> float:
    return os.path.getsize(path) / MB


def list_archives(directory: str) -> List[Tuple[str, int]]:
    """(file name, size in bytes) for every .pmtiles in `directory`, sorted by name."""
    if not os.path.isdir(directory):
        return []
    out = []
    for name in sorted(os.listdir(directory)):
        if name.endswith(".pmtiles"):
            out.append((name, os.path.getsize(os.path.join(directory, name))))
    return out
