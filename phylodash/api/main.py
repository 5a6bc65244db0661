# phylodash/api/main.py
# uvicorn phylodash.api.main:app --reload
from __future__ import annotations
from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from phylodash import config
from phylodash.db.session import engine
from phylodash.services.cache import MetadataCache
from phylodash.services.errors import PhyloDashError, ValidationError
from phylodash.api.phylo import router as phylo_router
from phylodash.api.blast import router as blast_router
from phylodash.api.structures import router as structures_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("phylodash.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # per-request timeouts are set by fetch_with_retry
    app.state.http_client = httpx.AsyncClient(timeout=None, follow_redirects=True)
    app.state.metadata_cache = MetadataCache(engine, ttl_seconds=config.METADATA_TTL_S)
    app.state.metadata_cache.purge_expired()
    try:
        yield
    finally:
        await app.state.http_client.aclose()


app = FastAPI(title="PhyloDash API", version="0.1.0", lifespan=lifespan)

# --- CORS setup ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# ------------------


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request body.")
    return JSONResponse(status_code=400, content={"error": f"{where}: {msg}" if where else msg})


@app.exception_handler(PhyloDashError)
async def service_error_handler(request: Request, exc: PhyloDashError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc) or "An unknown error occurred."})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s crashed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc) or "An unknown error occurred."})


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


# mount routes
app.include_router(phylo_router)
app.include_router(blast_router)
app.include_router(structures_router)
