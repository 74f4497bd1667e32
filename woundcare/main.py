"""FastAPI entry point for the wound care application."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from woundcare import __version__
from woundcare.core.grafts import validate_graft_data
from woundcare.core.logging import setup_logging
from woundcare.database import init_db
from woundcare.routers import (
    auth,
    commissions,
    dashboard,
    grafts,
    invoices,
    patients,
    pipeline_notes,
    referrals,
    sales_reps,
    treatments,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    for problem in validate_graft_data():
        logger.warning("Graft catalog: %s", problem)
    logger.info("Wound Care Desk %s started", __version__)
    yield


app = FastAPI(title="Wound Care Desk", version=__version__, lifespan=lifespan)

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(patients.router)
app.include_router(referrals.router)
app.include_router(sales_reps.router)
app.include_router(treatments.router)
app.include_router(commissions.router)
app.include_router(invoices.router)
app.include_router(grafts.router)
app.include_router(pipeline_notes.router)

app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")


@app.get("/")
def root() -> RedirectResponse:
    return RedirectResponse(url="/login")


@app.get("/health")
def health() -> Response:
    """Simple health endpoint for load balancers and platform checks."""
    return Response(content='{"status":"ok"}', media_type="application/json")


@app.exception_handler(HTTPException)
async def http_exception_redirect_login(request: Request, exc: HTTPException):
    """Send unauthenticated page loads to /login?next=...; API calls keep the JSON 401."""
    if exc.status_code != status.HTTP_401_UNAUTHORIZED:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    accept = request.headers.get("accept", "")
    if "text/html" in accept:
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        return RedirectResponse(url=f"/login?next={quote(target, safe='')}", status_code=status.HTTP_303_SEE_OTHER)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
