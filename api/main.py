#!/usr/bin/env python3
# api/main.py

import os
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, Response, StreamingResponse

from evmap import config
from evmap.catalog import ViewerConfig, load_viewer_config
from evmap.viewer import ALL_REGIONS, InfoPanel, ViewerApp
from evmap.viewer.formatting import info_rows
from evmap.viewer.legend import build_legend, render_legend_html
from evmap.viewer.page import compose_style, render_page

APP_NAME = "EV Modelling viewer API"

# ---------- Config ----------
# Serve archives from the local build directory unless a CDN base is configured
TILES_DIR = os.environ.get("EVMAP_TILES_DIR", config.PMTILES_DIR)
_DISCOVER = os.environ.get("EVMAP_DISCOVER_ARCHIVES", "").strip().lower() in ("1", "true", "yes")


def get_viewer_config() -> ViewerConfig:
    return load_viewer_config(archive_dir=TILES_DIR if _DISCOVER else None)


def _split(values: Optional[str]) -> List[str]:
    if not values:
        return []
    return [v.strip() for v in values.split(",") if v.strip()]


def build_app_state(
    cfg: ViewerConfig,
    region: str,
    stage: str,
    basemap: Optional[str],
    overlays: List[str],
    analysis: bool,
) -> ViewerApp:
    """Replay a selection through the viewer state machine."""
    if region != ALL_REGIONS and cfg.region(region) is None:
        raise HTTPException(status_code=404, detail=f"Unknown region '{region}'")
    try:
        cfg.stage(stage)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown stage '{stage}'")
    if basemap is not None and basemap not in cfg.basemaps:
        raise HTTPException(status_code=404, detail=f"Unknown basemap '{basemap}'")
    known_overlays = {o.id for o in cfg.overlays}
    unknown = [o for o in overlays if o not in known_overlays]
    if unknown:
        raise HTTPException(status_code=404, detail=f"Unknown overlay(s): {', '.join(unknown)}")

    app_ = ViewerApp(cfg)
    app_.load()
    if basemap is not None and basemap != app_.state.basemap:
        app_.select_basemap(basemap)
        app_.map.fire("style.load")
    app_.state.analysis_enabled = analysis
    app_.select_stage(stage)
    app_.select_region(region)
    for ov in overlays:
        app_.toggle_overlay(ov, True)
    return app_


# ---------- FastAPI ----------
app = FastAPI(title=APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "POST"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True, "app": APP_NAME}


@app.get("/api/config")
def viewer_config():
    """Regions, stages, overlays, color scales, basemaps and available archives."""
    return get_viewer_config().to_dict()


@app.get("/api/legend")
def legend(
    stage: str = Query("adoption_propensity"),
    overlays: Optional[str] = Query(None, description="Comma-separated overlay ids"),
    analysis: bool = Query(True),
):
    cfg = get_viewer_config()
    try:
        cfg.stage(stage)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown stage '{stage}'")
    ov_ids = _split(overlays)
    try:
        sections = build_legend(cfg, stage, ov_ids, analysis_enabled=analysis)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown overlay {e}")
    return {"sections": [s.to_dict() for s in sections], "html": render_legend_html(sections)}


@app.get("/api/style")
def style(
    region: str = Query("zettrans"),
    stage: str = Query("adoption_propensity"),
    basemap: Optional[str] = Query(None),
    overlays: Optional[str] = Query(None, description="Comma-separated overlay ids"),
    analysis: bool = Query(True),
):
    """Sources, layers and view for a selection, ready to add to a MapLibre map."""
    cfg = get_viewer_config()
    viewer = build_app_state(cfg, region, stage, basemap, _split(overlays), analysis)
    return compose_style(viewer)


@app.get("/", response_class=HTMLResponse)
def index(
    region: str = Query("zettrans"),
    stage: str = Query("adoption_propensity"),
    basemap: Optional[str] = Query(None),
    overlays: Optional[str] = Query(None),
    analysis: bool = Query(True),
):
    cfg = get_viewer_config()
    viewer = build_app_state(cfg, region, stage, basemap, _split(overlays), analysis)
    return HTMLResponse(render_page(viewer, cfg))


@app.post("/api/info")
def feature_info(payload: Dict[str, Any] = Body(...)):
    """Ordered, formatted info-panel rows for a clicked feature's properties."""
    stage = payload.get("stage") or "adoption_propensity"
    try:
        get_viewer_config().stage(stage)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown stage '{stage}'")
    properties = payload.get("properties") or {}
    if not isinstance(properties, dict):
        raise HTTPException(status_code=422, detail="'properties' must be an object")
    panel = InfoPanel(visible=bool(properties), rows=info_rows(stage, properties))
    return {"rows": [[label, value] for label, value in panel.rows], "html": panel.to_html()}


# ---------- Archive serving ----------
# pmtiles clients read the header and directories with Range requests.

BLOCK_SIZE = 1024 * 1024


def archive_etag(path: str) -> str:
    st = os.stat(path)
    return f'W/"{int(st.st_mtime)}-{st.st_size}"'


def parse_range(range_header: str, file_size: int):
    """(start, end) inclusive for a single 'bytes=' range; ValueError if unsatisfiable."""
    units, rng = range_header.split("=", 1)
    if units.strip().lower() != "bytes":
        raise ValueError("Only 'bytes' range is supported")
    first, last = rng.split("-", 1)
    if first.strip() == "":
        length = int(last)
        if length <= 0:
            raise ValueError("Invalid suffix length")
        start, end = max(file_size - length, 0), file_size - 1
    else:
        start = int(first)
        end = min(int(last), file_size - 1) if last.strip() else file_size - 1
    if start < 0 or end < start or start >= file_size:
        raise ValueError("Invalid range")
    return start, end


def iter_bytes(path: str, start: int, length: int):
    with open(path, "rb") as f:
        f.seek(start)
        while length > 0:
            block = f.read(min(BLOCK_SIZE, length))
            if not block:
                return
            length -= len(block)
            yield block


def resolve_archive(file_path: str) -> str:
    """Absolute path inside TILES_DIR; 404 for anything outside it or missing."""
    root = os.path.realpath(TILES_DIR)
    path = os.path.realpath(os.path.join(root, file_path))
    if not path.startswith(root + os.sep) or not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File not found")
    return path


@app.api_route("/tiles/{file_path:path}", methods=["GET", "HEAD"])
async def serve_archive(file_path: str, request: Request):
    path = resolve_archive(file_path)
    if not path.endswith(".pmtiles"):
        return FileResponse(path)

    size = os.path.getsize(path)
    etag = archive_etag(path)
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304)

    headers = {"Accept-Ranges": "bytes", "ETag": etag, "Cache-Control": "public, max-age=0"}
    range_header = request.headers.get("range")
    if not range_header:
        headers["Content-Length"] = str(size)
        return FileResponse(path, headers=headers, media_type="application/octet-stream")

    try:
        start, end = parse_range(range_header, size)
    except ValueError:
        headers["Content-Range"] = f"bytes */{size}"
        return Response(status_code=416, headers=headers)

    length = end - start + 1
    headers.update({
        "Content-Range": f"bytes {start}-{end}/{size}",
        "Content-Length": str(length),
        "Content-Type": "application/octet-stream",
    })
    if request.method == "HEAD":
        return Response(status_code=206, headers=headers)
    return StreamingResponse(iter_bytes(path, start, length), status_code=206, headers=headers)


if __name__ == "__main__":
    print(f"Starting {APP_NAME} on http://{config.API_HOST}:{config.PORT}")
    print(f"Serving archives from {TILES_DIR}")
    uvicorn.run(app, host=config.API_HOST, port=config.PORT, reload=False)
