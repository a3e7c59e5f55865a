import argparse
import logging
import sys

from . import config
from .batch import BatchReport, convert_all, convert_missing, convert_overlays, reduce_large
from .tiles import MB, list_archives

logger = logging.getLogger("evmap.cli")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="evmap",
        description="Convert EV modelling GeoPackages to PMTiles and serve the map viewer",
    )
    ap.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...).")
    sub = ap.add_subparsers(dest="command", required=True)

    def batch_cmd(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--input-dir", default=config.OUTPUT_DIR,
                       help="Analysis outputs, laid out as {region}/{stage}.gpkg")
        p.add_argument("--output-dir", default=config.PMTILES_DIR, help="Where .pmtiles are written")
        p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
        return p

    batch_cmd("all", "Convert every region/stage found under --input-dir")
    batch_cmd("missing", "Convert only the archives missing from the published set")
    batch_cmd("reduce", "Rebuild oversized line layers with heavier sampling")

    p = sub.add_parser("overlays", help="Convert the Scotland-wide overlay layers")
    p.add_argument("--data-dir", default=None, help=f"Overlay inputs (default: {config.DATA_DIR})")
    p.add_argument("--output-dir", default=config.PMTILES_DIR)

    p = sub.add_parser("summary", help="List the archives in --output-dir")
    p.add_argument("--output-dir", default=config.PMTILES_DIR)

    p = sub.add_parser("serve", help="Run the viewer API")
    p.add_argument("--host", default=config.API_HOST)
    p.add_argument("--port", type=int, default=config.PORT)
    return ap


def _exit_code(report: BatchReport) -> int:
    return 0 if report.ok else 1


def run_cli(args: argparse.Namespace) -> int:
    if args.command == "summary":
        archives = list_archives(args.output_dir)
        total = sum(size for _, size in archives)
        print(f"Total: {len(archives)} files, {total / MB:.1f} MB")
        for name, size in archives:
            print(f"  {name} ({size / MB:.1f} MB)")
        return 0

    if args.command == "serve":
        import uvicorn
        from api.main import app

        uvicorn.run(app, host=args.host, port=args.port, reload=False)
        return 0

    try:
        if args.command == "all":
            report = convert_all(args.input_dir, args.output_dir, progress=not args.no_progress)
        elif args.command == "missing":
            report = convert_missing(args.input_dir, args.output_dir, progress=not args.no_progress)
        elif args.command == "reduce":
            report = reduce_large(args.input_dir, args.output_dir, progress=not args.no_progress)
        else:
            report = convert_overlays(args.data_dir, args.output_dir)
    except KeyboardInterrupt:
        print("\n[cli] Interrupted.")
        return 130  # 128 + SIGINT
    return _exit_code(report)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
