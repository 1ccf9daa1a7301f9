from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.config import load_cors_origins

logger = logging.getLogger(__name__)

CORS_ORIGINS = list(load_cors_origins())


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.lifespan_started = True
    logger.info("Portall evaluation API starting")
    yield
    app.state.lifespan_shutdown = True


app = FastAPI(title="Portall evaluations", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix="/api")
