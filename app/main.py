"""FastAPI Hauptanwendung für das FLIGHTHOUR Portal."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.auth import AuthMiddleware, SecurityHeadersMiddleware
from app.config import settings
from app.database import check_db_connection, engine

# Logging konfigurieren
logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup und Shutdown Events."""
    logger.info(f"Starte FLIGHTHOUR Portal ({settings.environment})...")
    if await check_db_connection():
        logger.info("Datenbankverbindung erfolgreich")
    else:
        logger.warning("Datenbank beim Start nicht erreichbar")

    yield

    await engine.dispose()
    logger.info("Beende FLIGHTHOUR Portal...")


# FastAPI App initialisieren
app = FastAPI(
    title="FLIGHTHOUR Portal",
    description="Support-Tickets, Kalender, Shop-Buchungen, Schichtplanung und Zeiterfassung",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# ── Middleware-Stack (Reihenfolge: zuletzt registriert = zuerst ausgeführt) ──
# 1. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 2. Auth-Middleware (prüft das Token des Auth-Backends)
app.add_middleware(AuthMiddleware)

# 3. Security Headers (X-Frame-Options, HSTS, etc.)
app.add_middleware(SecurityHeadersMiddleware)


# Request-ID Middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Fügt eine eindeutige Request-ID zu jedem Request hinzu."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# Health-Check Endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """Prüft, ob die Anwendung läuft."""
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "environment": settings.environment,
    }


# API Router einbinden
from app.api import register_exception_handlers
from app.api.routes_calendar import router as calendar_router
from app.api.routes_contacts import router as contacts_router
from app.api.routes_cron import router as cron_router
from app.api.routes_documents import router as documents_router
from app.api.routes_employees import router as employees_router
from app.api.routes_mayday import router as mayday_router
from app.api.routes_notifications import router as notifications_router
from app.api.routes_public import router as public_router
from app.api.routes_shift_coverage import router as shift_coverage_router
from app.api.routes_shop_v1 import router as shop_v1_router
from app.api.routes_system import router as system_router
from app.api.routes_tags import router as tags_router
from app.api.routes_templates import router as templates_router
from app.api.routes_tickets import router as tickets_router
from app.api.routes_time_tracking import router as time_tracking_router
from app.api.routes_work_requests import router as work_requests_router

# Custom Exception Handlers registrieren
register_exception_handlers(app)

# Support
app.include_router(tickets_router, prefix="/api")
app.include_router(tags_router, prefix="/api")
app.include_router(templates_router, prefix="/api")
app.include_router(contacts_router, prefix="/api")

# Kalender, MAYDAY, Shop
app.include_router(calendar_router, prefix="/api")
app.include_router(mayday_router, prefix="/api")
app.include_router(shop_v1_router, prefix="/api")  # Shop API (/api/v1/..., x-api-key)

# Personal
app.include_router(employees_router, prefix="/api")
app.include_router(shift_coverage_router, prefix="/api")
app.include_router(work_requests_router, prefix="/api")
app.include_router(time_tracking_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(documents_router, prefix="/api")

# Ohne Benutzer-Token (Einmal-Tokens bzw. CRON_SECRET)
app.include_router(public_router, prefix="/api")
app.include_router(cron_router, prefix="/api")

# System (/api/system/status, Queues)
app.include_router(system_router, prefix="/api")
