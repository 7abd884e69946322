# src/bloommarket/api/app.py
"""
FastAPI application wiring.

Creates the `FastAPI` instance and mounts the routers; proximity logic lives in
`bloommarket.core.proximity` and data access in `bloommarket.ingestion`.
"""

from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from bloommarket.core.env import env_flag
from bloommarket.core.errors import BloomMarketError, CommunityNotFound, FetchFailed, ListingNotFound
from bloommarket.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="BloomMarket API", version="0.1.0")

# CORS for local frontends. Configure via env:
# - BLOOMMARKET_CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
# - BLOOMMARKET_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("BLOOMMARKET_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = env_flag("BLOOMMARKET_CORS_ALLOW_LOCAL", default=True)
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

app.include_router(router)

_NOT_FOUND = (ListingNotFound, CommunityNotFound)


@app.exception_handler(BloomMarketError)
async def _domain_error(request: Request, exc: BloomMarketError) -> JSONResponse:
    if isinstance(exc, FetchFailed):
        status = 502
    elif isinstance(exc, _NOT_FOUND):
        status = 404
    else:
        status = 400
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


@app.get("/healthz", include_in_schema=False)
def healthz() -> dict:
    return {"status": "ok"}
