import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.careflow.src.careflow.config import settings
from services.careflow.src.careflow.routes import api_router

logger = logging.getLogger(__name__)

app = FastAPI(title="CareFlow Triage API")

# CORS for frontend
cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "https://localhost:3000",
]

if settings.cors_origin:
    cors_origins.append(settings.cors_origin)
elif os.getenv("CORS_ORIGIN"):
    cors_origins.append(os.getenv("CORS_ORIGIN"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router)


@app.get("/")
def root() -> dict[str, str]:
    return {"service": "careflow-triage-api", "docs": "/docs"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
