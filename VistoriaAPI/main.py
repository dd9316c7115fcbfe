import os
import logging
from datetime import datetime, timezone

# Load environment variables before importing app modules that read them
from VistoriaAPI.database import engine, Base, load_environment

load_environment()

from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from VistoriaAPI import config
from VistoriaAPI.errors import InvalidStateError, VistoriaError
from VistoriaAPI.routes import (
    admin_router,
    auth_router,
    inspections_router,
    properties_router,
    reports_router,
    settings_router,
    uploads_router,
    users_router,
)
import uvicorn

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    logger.info("App startup event (storage=%s)", config.STORAGE_TYPE)
    yield
    # Shutdown logic
    logger.info("App shutdown event")


app = FastAPI(title="Vistoria API", lifespan=lifespan)

# Create all the tables in the database (make sure models are imported)
Base.metadata.create_all(bind=engine)


@app.exception_handler(VistoriaError)
async def vistoria_error_handler(request: Request, exc: VistoriaError):
    body = {"detail": exc.message}
    if isinstance(exc, InvalidStateError) and exc.unverified_count is not None:
        body["unverified_count"] = exc.unverified_count
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation error", "errors": errors})


# Auth routes (login, refresh, me)
app.include_router(auth_router)

# Property and room routes
app.include_router(properties_router)

# Inspection lifecycle routes
app.include_router(inspections_router)

# Photo upload routes
app.include_router(uploads_router)

# Report routes
app.include_router(reports_router)

# User management (admin only)
app.include_router(users_router)

# Admin dashboard
app.include_router(admin_router)

# Runtime settings (admin only)
app.include_router(settings_router)

# Locally stored photos
if config.STORAGE_TYPE == "local":
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# Root endpoint for testing
@app.get("/")
def read_root():
    return {"message": "Welcome to the Vistoria API"}

# Run the application (for development)
if __name__ == "__main__":
    uvicorn.run("VistoriaAPI.main:app", host="0.0.0.0", port=8000, log_level="debug")
