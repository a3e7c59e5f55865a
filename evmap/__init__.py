from .batch import BatchReport, convert_all, convert_missing, convert_overlays, reduce_large
from .catalog import ViewerConfig, load_viewer_config
from .cli import main
from .convert import ConversionResult, convert_layer

__all__ = [
    "BatchReport",
    "ConversionResult",
    "ViewerConfig",
    "convert_all",
    "convert_layer",
    "convert_missing",
    "convert_overlays",
    "load_viewer_config",
    "main",
    "reduce_large",
]

# -------------------------
# evmap file structure
# -------------------------
# config.py: paths, CRS, sampling thresholds, tippecanoe profiles.
# catalog.py: stages, regions, overlays, color scales, basemaps, archive keys.
# errors.py: pipeline exceptions.
# geometry_utils.py: column slicing, reprojection, repair, simplification.
# sampling.py: size-based deterministic subsampling of line layers.
# tiles.py: GeoJSON interchange + tippecanoe invocation.
# convert.py: one GeoPackage -> one .pmtiles.
# overlays.py: Scotland-wide overlay archives.
# batch.py: sequential batches with per-item isolation + summary.
# cli.py: argparse entrypoint.
# viewer/: selection state machine, layer styles, legend, info panel.
