import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_admin.core.config import CORS_ALLOW_ORIGIN_REGEX, CORS_ORIGINS, DATABASE_URL
from crm_admin.core.database import Base, SessionLocal, engine
from crm_admin.core.errors import register_exception_handlers
from crm_admin.core.logging_setup import configure_logging
from crm_admin.core.startup_checks import ensure_migrations_applied, validate_database_environment
from crm_admin.middleware.observability import ObservabilityMiddleware
import crm_admin.models  # models must be registered before create_all

from crm_admin.models.user import User
from crm_admin.services.passwords import hash_password, password_looks_hashed
from crm_admin.routers.auth import router as auth_router
from crm_admin.routers.clients import router as clients_router
from crm_admin.routers.departments import router as departments_router
from crm_admin.routers.gateway import router as gateway_router
from crm_admin.routers.internal_metrics import router as internal_metrics_router
from crm_admin.routers.plans import router as plans_router
from crm_admin.routers.staff import router as staff_router

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_NAME = "Admin"
DEFAULT_ADMIN_ROLE = "ADMIN"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="CRM Admin API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)
register_exception_handlers(app)


def _resolve_admin_password_hash(password: str) -> str:
    if password_looks_hashed(password):
        logger.info("%s password already hashed; storing as-is", BOOTSTRAP_PREFIX)
        return password
    return hash_password(password)


def _bootstrap_initial_admin() -> None:
    dev_admin_password = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
    if not dev_admin_password:
        logger.warning("%s skipped: configure DEV_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    dev_admin_email = (os.getenv("DEV_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).strip() or DEFAULT_ADMIN_EMAIL).lower()
    dev_admin_name = os.getenv("DEV_ADMIN_NAME", DEFAULT_ADMIN_NAME).strip() or DEFAULT_ADMIN_NAME
    dev_admin_client_id = os.getenv("DEV_ADMIN_CLIENT_ID", "").strip() or None

    db = SessionLocal()
    try:
        existing_admin = db.query(User).filter(User.email == dev_admin_email).first()
        if existing_admin:
            logger.info("%s exists id=%s email=%s", BOOTSTRAP_PREFIX, existing_admin.id, existing_admin.email)
            return

        admin = User(
            client_id=dev_admin_client_id,
            email=dev_admin_email,
            name=dev_admin_name,
            password_hash=_resolve_admin_password_hash(dev_admin_password),
            role=DEFAULT_ADMIN_ROLE,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("%s created id=%s email=%s", BOOTSTRAP_PREFIX, admin.id, admin.email)
    except Exception:
        db.rollback()
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_initial_admin()
    except Exception:
        logger.exception("%s ERROR startup failed", BOOTSTRAP_PREFIX)
        raise


# Routers
app.include_router(auth_router)
app.include_router(staff_router)
app.include_router(departments_router)
app.include_router(clients_router)
app.include_router(gateway_router)
app.include_router(plans_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
