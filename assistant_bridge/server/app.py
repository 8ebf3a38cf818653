# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assistant_bridge.config.loader import get_str_env, load_env_file
from assistant_bridge.errors import BridgeError, InvalidStateError, NotFoundError, ValidationError
from assistant_bridge.server.dependencies import initialise_bridge, set_bridge
from assistant_bridge.server.router import assistants_router
from assistant_bridge.server.router import router as threads_router

logger = logging.getLogger(__name__)

load_env_file()

_STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    bridge = initialise_bridge()
    await bridge.init()
    set_bridge(bridge)
    try:
        yield
    finally:
        await bridge.close()


app = FastAPI(
    title="Assistant Bridge API",
    description="Assistant/thread/run API emulated over a stateless completion backend",
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins_str = get_str_env("ALLOWED_ORIGINS", "http://localhost:3000")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

logger.info("Allowed origins: %s", allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(threads_router)
app.include_router(assistants_router)


@app.exception_handler(BridgeError)
async def bridge_error_handler(_: Request, exc: BridgeError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("Unhandled bridge error: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
