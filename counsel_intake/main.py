from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import logging
from pathlib import Path

from counsel_intake.api import ai, clients, documents, health, intake, notifications
from counsel_intake.auth import routes as auth_routes
from counsel_intake.core.config import settings
from counsel_intake.core.db import create_all
from counsel_intake.core.errors import setup_exception_handlers
from counsel_intake.middleware.request_logger import RequestLoggerMiddleware

# ---- Logging config ---------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s",
)
logger = logging.getLogger("intake.main")
logger.info("Starting counsel-intake API with LOG_LEVEL=%s", settings.log_level)

# ---- FastAPI app ------------------------------------------------------------
app = FastAPI(title="Counsel Intake API")
app.add_middleware(RequestLoggerMiddleware)

# ---- CORS -------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# ---- Routers ----------------------------------------------------------------
app.include_router(auth_routes.router)         # /api/auth/*
app.include_router(intake.router)              # /api/intake/*
app.include_router(ai.router)                  # /api/ai/*
app.include_router(documents.router)           # /api/documents/*
app.include_router(clients.router)             # /api/clients/*
app.include_router(notifications.router)       # /api/notifications/*
# Health + introspection
app.include_router(health.router, prefix="/health", tags=["Health"])

# Locally stored uploads are served from PUBLIC_UPLOAD_BASE_URL
if settings.storage_backend == "local" and settings.public_upload_base_url.startswith("/"):
    Path(settings.local_storage_path).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.public_upload_base_url.rstrip("/") or "/uploads",
        StaticFiles(directory=settings.local_storage_path, check_dir=False),
        name="uploads",
    )

logger.info("Routers registered.")


# ---- Startup ----------------------------------------------------------------
@app.on_event("startup")
def _startup() -> None:
    # Auto-create tables (safe to run repeatedly)
    create_all()
    logger.info("Startup completed.")
