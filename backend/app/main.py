from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.core.config import settings
from app.services.auth_service import auth_service
from app.services.blob_storage import blob_storage
from app.services.client_service import client_service
from app.services.document_verifier import document_verifier
from app.services.employee_service import employee_service

logger = logging.getLogger(__name__)

_SERVICES = [
    ("EmployeeService", employee_service, "continuing without DB"),
    ("ClientService", client_service, "continuing without client registry"),
    ("BlobStorageService", blob_storage, "continuing without document storage"),
    ("DocumentVerifier", document_verifier, "continuing without document verification"),
    ("AuthService", auth_service, "continuing without admin sign-in"),
]


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    for name, service, fallback in _SERVICES:
        try:
            await service.initialize(settings)
        except Exception:
            logger.exception("Failed to initialize %s — %s", name, fallback)
    yield
    for _, service, _ in _SERVICES:
        await service.close()


app = FastAPI(
    title="CISS Workforce API",
    description="Security guard enrollment, directory and profile management",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "CISS Workforce API"}
