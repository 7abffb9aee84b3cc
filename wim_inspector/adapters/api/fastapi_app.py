# /wim_inspector/adapters/api/fastapi_app.py
from __future__ import annotations
import logging
import os
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wim_inspector.config import settings
from wim_inspector.adapters.system.logging_cfg import configure_logger
from wim_inspector.adapters.system.redis_result_store import RedisResultStore
from wim_inspector.adapters.system.celery_app import celery_app
from wim_inspector.adapters.wimlib.wimlib_reader import WimlibCliOpener
from wim_inspector.domain.errors import WimInspectorError
from wim_inspector.domain.image_service import ImageMetadataService, record_to_dict
from wim_inspector.ports.result_store import ResultStorePort

LOG = logging.getLogger("adapter.api")
app = FastAPI(
    title="wim-inspector",
    version="1.0.0",
    description="Metadata of the images stored in WIM/ESD files.",
)
configure_logger()

_store: ResultStorePort = RedisResultStore(settings.REDIS_URL, ttl_seconds=settings.RESULT_TTL_SECONDS)
_service = ImageMetadataService(
    WimlibCliOpener(),
    approximate_size=settings.APPROXIMATE_SIZE_FALLBACK,
)

class AnalyzeRequestModel(BaseModel):
    wimFilePath: str

def _check_api_key(x_api_key: str | None) -> None:
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="invalid api key")

class RequestFailed(Exception):
    """Rejected request; rendered as a 400 with the {success, message, errorDetails} envelope."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

@app.exception_handler(RequestFailed)
def _request_failed(request: Request, exc: RequestFailed) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": exc.message, "errorDetails": exc.details},
    )

def _normalize_path(wim_file_path: str) -> str:
    if not wim_file_path or not wim_file_path.strip():
        raise RequestFailed("WIM file path cannot be empty")
    try:
        return os.path.abspath(wim_file_path.strip())
    except (TypeError, ValueError) as e:
        raise RequestFailed("Invalid file path", str(e)) from e

def _validated_path(wim_file_path: str) -> str:
    path = _normalize_path(wim_file_path)
    if not os.path.isfile(path):
        raise RequestFailed(f"The WIM file does not exist: {path}")
    if os.path.splitext(path)[1].lower() not in settings.ALLOWED_EXTENSIONS:
        raise RequestFailed(f"Only {' and '.join(settings.ALLOWED_EXTENSIONS)} files are supported")
    return path

@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "version": app.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

@app.get("/info")
def info() -> dict:
    return {
        "name": app.title,
        "description": app.description,
        "version": app.version,
        "endpoints": [
            "/health",
            "/info",
            "/api/wim/image-info",
            "/api/wim/all-images-info",
            "/api/wim/check-file",
            "/api/wim/analyze",
        ],
    }

@app.get("/api/wim/image-info")
def image_info(
    wim_file_path: str = Query(..., alias="wimFilePath"),
    image_index: int = Query(..., alias="imageIndex"),
    x_api_key: str | None = Header(default=None),
) -> dict:
    _check_api_key(x_api_key)
    if image_index <= 0:
        raise RequestFailed("Image index must be greater than 0")
    path = _validated_path(wim_file_path)
    LOG.info("api.image_info", extra={"extra": {"path": path, "index": image_index}})
    try:
        record = _service.inspect_image(path, image_index)
    except WimInspectorError as e:
        LOG.warning("api.image_info.failed", extra={"extra": {"path": path, "error": str(e)}})
        raise RequestFailed("Error analyzing WIM image", str(e)) from e
    return {
        "success": True,
        "message": f"Detailed information retrieved for image {image_index}",
        "data": record_to_dict(record),
    }

@app.get("/api/wim/all-images-info")
def all_images_info(
    wim_file_path: str = Query(..., alias="wimFilePath"),
    x_api_key: str | None = Header(default=None),
) -> dict:
    _check_api_key(x_api_key)
    path = _validated_path(wim_file_path)
    LOG.info("api.all_images_info", extra={"extra": {"path": path}})
    try:
        records = _service.inspect_all_images(path)
    except WimInspectorError as e:
        LOG.warning("api.all_images_info.failed", extra={"extra": {"path": path, "error": str(e)}})
        raise RequestFailed("Error analyzing all WIM images", str(e)) from e
    return {
        "success": True,
        "message": f"Information retrieved for {len(records)} image(s)",
        "data": [record_to_dict(r) for r in records],
    }

@app.get("/api/wim/check-file")
def check_file(
    wim_file_path: str = Query(..., alias="wimFilePath"),
    x_api_key: str | None = Header(default=None),
) -> dict:
    _check_api_key(x_api_key)
    path = _normalize_path(wim_file_path)
    if not os.path.isfile(path):
        return {"success": False, "message": "File not found", "data": None}
    st = os.stat(path)
    return {
        "success": True,
        "message": "File accessible",
        "data": {
            "path": path,
            "size": st.st_size,
            "modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
            "extension": os.path.splitext(path)[1],
        },
    }

@app.get("/api/wim/debug-xml", include_in_schema=False)
def debug_xml(
    wim_file_path: str = Query(..., alias="wimFilePath"),
    image_index: int = Query(1, alias="imageIndex"),
    x_api_key: str | None = Header(default=None),
) -> dict:
    _check_api_key(x_api_key)
    path = _validated_path(wim_file_path)
    try:
        return _service.xml_preview(path, image_index)
    except WimInspectorError as e:
        raise RequestFailed("Error reading WIM XML", str(e)) from e

@app.post("/api/wim/analyze")
def analyze_start(payload: AnalyzeRequestModel, x_api_key: str | None = Header(default=None)) -> dict:
    _check_api_key(x_api_key)
    path = _validated_path(payload.wimFilePath)

    job_id = str(uuid.uuid4())
    _store.set_pending(job_id)

    task = celery_app.send_task("analyze_container", args=[job_id, path], kwargs=None)
    LOG.info("analyze.enqueued", extra={"extra": {"job_id": job_id, "task_id": task.id}})
    return {"job_id": job_id, "status": "pending", "task_id": task.id}

@app.get("/api/wim/analyze/{job_id}")
def analyze_result(job_id: str, x_api_key: str | None = Header(default=None)) -> dict:
    _check_api_key(x_api_key)
    entry = _store.get(job_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="job_id not found")
    return entry
