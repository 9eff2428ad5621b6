import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dancehub.db")
# Pool settings apply to server databases only
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_SECONDS", "1.0"))

# Redis backs the onboarding progress store; unset means in-memory progress only
REDIS_URL = os.getenv("REDIS_URL")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION")
# Private lessons are charged in a single currency for now
LESSON_CURRENCY = os.getenv("LESSON_CURRENCY", "eur")

# Supabase Auth (bearer tokens are resolved against /auth/v1/user)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")

# Base URL used by the HTTP client adapter of the onboarding and booking flows
DANCEHUB_API_URL = os.getenv("DANCEHUB_API_URL", "http://localhost:8000")

# Frontend base URL (CORS default)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Onboarding wizard
ONBOARDING_AUTOSAVE_DELAY_SECONDS = float(os.getenv("ONBOARDING_AUTOSAVE_DELAY_SECONDS", "0.1"))
ONBOARDING_PROGRESS_TTL_SECONDS = int(
    os.getenv("ONBOARDING_PROGRESS_TTL_SECONDS", str(30 * 24 * 3600))
)
# Existing account checks fail soft after this bound
ACCOUNT_STATUS_TIMEOUT_SECONDS = float(os.getenv("ACCOUNT_STATUS_TIMEOUT_SECONDS", "10"))

# Identity documents
MAX_DOCUMENT_SIZE_BYTES = int(os.getenv("MAX_DOCUMENT_SIZE_BYTES", str(10 * 1024 * 1024)))
