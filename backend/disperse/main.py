from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from disperse.api.v1.router import api_router
from disperse.core.config import settings
from disperse.services.transfer_analyzer import transfer_analyzer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    try:
        await transfer_analyzer.initialize(settings)
    except Exception:
        logger.exception("Failed to initialize TransferAnalyzer, continuing without AI analysis")
    yield
    await transfer_analyzer.close()


app = FastAPI(
    title="Disperse API",
    description="AI-assisted employee transfer proposals",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Disperse API"}
