import os
import re
from dotenv import load_dotenv

# .env at the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crm_admin.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
PUBLIC_BASE_DOMAIN = os.getenv("PUBLIC_BASE_DOMAIN", "").strip().lower()

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

_cors_origin_regex_env = os.getenv("CORS_ALLOW_ORIGIN_REGEX", "").strip()
if _cors_origin_regex_env:
    CORS_ALLOW_ORIGIN_REGEX = _cors_origin_regex_env
elif PUBLIC_BASE_DOMAIN and not IS_DEV:
    CORS_ALLOW_ORIGIN_REGEX = rf"^https://([a-z0-9-]+\.)?{re.escape(PUBLIC_BASE_DOMAIN)}$"
else:
    CORS_ALLOW_ORIGIN_REGEX = None

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))

# Identity provider (Supabase admin API)
SUPABASE_URL = os.getenv("SUPABASE_URL", os.getenv("NEXT_PUBLIC_SUPABASE_URL", "")).strip().rstrip("/")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "").strip()

# External CRM gateway (OmniStack). The API key is stored per client.
OMNISTACK_GATEWAY_URL = os.getenv("OMNISTACK_GATEWAY_URL", "").strip().rstrip("/")

EXTERNAL_HTTP_TIMEOUT_SECONDS = float(os.getenv("EXTERNAL_HTTP_TIMEOUT_SECONDS", "20"))

# Payment plans
PAYMENT_PLAN_IDS = {
    "basic_monthly": os.getenv("STRIPE_BASIC_PLAN_MONTHLY_ID", ""),
    "basic_yearly": os.getenv("STRIPE_BASIC_PLAN_YEARLY_ID", ""),
    "professional_monthly": os.getenv("STRIPE_PROFESSIONAL_PLAN_MONTHLY_ID", ""),
    "professional_yearly": os.getenv("STRIPE_PROFESSIONAL_PLAN_YEARLY_ID", ""),
}
