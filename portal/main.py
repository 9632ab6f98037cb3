import os
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from portal.db import Base, engine, ensure_sqlite_schema
from portal.api import applications, facilities
from portal.services.realtime import hub

API_KEY = os.getenv("PORTAL_API_KEY", "").strip()
LOG_LEVEL = os.getenv("PORTAL_LOG_LEVEL", "INFO").strip().upper()
CORS_ORIGINS = [item.strip() for item in os.getenv("PORTAL_CORS_ORIGINS", "*").split(",") if item.strip()]
QUIET_ACCESS_LOG = os.getenv("PORTAL_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}
APPLICATIONS_PREFIX = "/api/v1/applications/"

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

if QUIET_ACCESS_LOG:
    # Keep warning/error lines, suppress normal access noise (200/201 etc).
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()


def _drop_pending_edits(event_type: str, payload: dict) -> None:
    if event_type != "config_changed" or payload.get("method") != "DELETE":
        return
    path = str(payload.get("path") or "")
    if not path.startswith(APPLICATIONS_PREFIX):
        return
    remainder = path[len(APPLICATIONS_PREFIX):].strip("/")
    # Only whole-application deletes; /edits and facility deletes carry more segments.
    if remainder and "/" not in remainder:
        applications.application_edits.discard(remainder)


hub.subscribe(_drop_pending_edits)

app = FastAPI(title="Operations Portal")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "portal-api",
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }


@app.get("/healthz")
def healthz():
    return {"ok": True, "revision": hub.revision}


@app.websocket("/ws/updates")
async def ws_updates(websocket: WebSocket):
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        logger.exception("Realtime socket closed unexpectedly")
        await hub.disconnect(websocket)


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if not API_KEY:
        return await call_next(request)
    path = request.url.path
    if path.startswith("/docs") or path.startswith("/openapi.json") or path.startswith("/redoc") or path == "/healthz":
        return await call_next(request)
    if request.headers.get("X-API-Key") != API_KEY:
        return JSONResponse({"detail": "Unauthorized"}, status_code=401)
    return await call_next(request)


@app.middleware("http")
async def realtime_mutation_middleware(request: Request, call_next):
    response = await call_next(request)
    method = request.method.upper()
    path = request.url.path
    if response.status_code < 400 and method in {"POST", "PUT", "DELETE"}:
        watched_prefixes = ("/api/v1/applications", "/api/v1/facilities")
        if path.startswith(watched_prefixes):
            await hub.publish(
                "config_changed",
                {
                    "path": path,
                    "method": method,
                },
            )
    return response

app.include_router(applications.router)
app.include_router(facilities.router)
app.include_router(facilities.application_router)
