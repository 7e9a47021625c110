from __future__ import annotations

import os
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates

from app import config
from app.blobs import BlobStore
from app.errors import ReportError
from app.service import ReportService
from app.storage import RecordStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Civic Reports", version="1.0.0")
templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_service() -> ReportService:
    return ReportService(
        RecordStore(config.REPORTS_FILE),
        BlobStore(config.UPLOAD_DIR, config.MAX_IMAGE_BYTES, config.UPLOAD_URL_PREFIX),
    )


app.state.service = build_service()


def get_service(request: Request) -> ReportService:
    return request.app.state.service


@app.on_event("startup")
def on_startup():
    app.state.service.ensure()


NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@app.middleware("http")
async def no_store_for_api(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        response.headers.update(NO_STORE_HEADERS)
    return response


# ---------------- Errors ----------------
def error_body(error: str, detail: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if detail:
        body["detail"] = detail
    return body


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    # internal details only leave the server in development
    detail = exc.detail if exc.status_code < 500 or config.DEBUG else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=400,
        content=error_body("Invalid request", str(first.get("msg", "")) or None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = f"{type(exc).__name__}: {exc}" if config.DEBUG else None
    headers = NO_STORE_HEADERS if request.url.path.startswith("/api") else None
    return JSONResponse(
        status_code=500, content=error_body("Internal server error", detail), headers=headers
    )


# ---------------- Pages ----------------
@app.get("/", response_class=HTMLResponse)
def home(request: Request, service: ReportService = Depends(get_service)):
    return templates.TemplateResponse(
        request,
        "index.html",
        {"reports": service.list(), "max_mb": config.MAX_IMAGE_MB},
    )


@app.get("/stats", response_class=HTMLResponse)
def stats_page(request: Request, service: ReportService = Depends(get_service)):
    return templates.TemplateResponse(request, "stats.html", service.stats())


# ---------------- API ----------------
@app.post("/api/report")
def api_report(
    description: str = Form(""),
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    service: ReportService = Depends(get_service),
):
    report = service.submit(description, lat=lat, lng=lng, photo=photo)
    return {"success": True, "report": report.to_json()}


@app.get("/api/reports")
def api_reports(service: ReportService = Depends(get_service)):
    return {"reports": [r.to_json() for r in service.list()]}


@app.post("/api/report/{report_id}/toggle")
def api_toggle(report_id: str, service: ReportService = Depends(get_service)):
    report = service.toggle(report_id)
    return {"success": True, "report": report.to_json()}


@app.get("/api/stats/summary")
def api_stats_summary(
    days: int = Query(30, ge=1, le=3650),
    service: ReportService = Depends(get_service),
):
    return service.stats(days=days)


@app.get("/uploads/{filename}")
def uploads(filename: str, service: ReportService = Depends(get_service)):
    return FileResponse(service.blobs.resolve(filename))
