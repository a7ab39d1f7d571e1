import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


def _split_env(name: str, default: str) -> List[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


class DirectorySettings(BaseModel):
    # Empty url means the local employees table is the directory
    url: Optional[str] = Field(default=os.getenv("DIRECTORY_URL") or None)
    api_key: Optional[str] = Field(default=os.getenv("DIRECTORY_API_KEY"))
    timeout_seconds: float = Field(default=float(os.getenv("DIRECTORY_TIMEOUT_SECONDS", "5")))
    retry_attempts: int = Field(default=int(os.getenv("DIRECTORY_RETRY_ATTEMPTS", "2")))


class Config(BaseModel):
    app_name: str = "Appraisal Workflow Service"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./appraisals.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Roles that carry the HR override capability
    hr_roles: List[str] = Field(
        default_factory=lambda: _split_env("HR_ROLES", "SUPER_ADMIN,HR_ADMIN,HR_MANAGER,HR_STAFF")
    )

    # Employee directory collaborator
    directory: DirectorySettings = DirectorySettings()

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: _split_env(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:3001,"
            "http://127.0.0.1:3000,http://127.0.0.1:3001",
        )
    )

    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("Using insecure default SECRET_KEY, only acceptable in development.")
