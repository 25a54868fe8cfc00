import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./careflow.db")

# Access tokens are HS256 JWTs issued by the auth provider
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
if not AUTH_JWT_SECRET:
    import warnings

    warnings.warn(
        "AUTH_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    AUTH_JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

# Provider names written on encounters before a real provider is resolved
ORDER_PLACEHOLDER_PROVIDER = os.getenv("ORDER_PLACEHOLDER_PROVIDER", "TBD")
ASYNC_PROVIDER_NAME = os.getenv("ASYNC_PROVIDER_NAME", "System")
LINKED_PROVIDER_PLACEHOLDER = os.getenv("LINKED_PROVIDER_PLACEHOLDER", "Provider")

# Default session lengths (minutes) for appointments created from encounters
APPOINTMENT_DEFAULT_DURATION_MINUTES = int(os.getenv("APPOINTMENT_DEFAULT_DURATION_MINUTES", "30"))
COACHING_DEFAULT_DURATION_MINUTES = int(os.getenv("COACHING_DEFAULT_DURATION_MINUTES", "60"))
