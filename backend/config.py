"""
Application configuration with Docker secrets support.

Secrets are read using the _read_secret() pattern:
  1. Direct env var (e.g., S3_SECRET_ACCESS_KEY)
  2. File-based env var (e.g., S3_SECRET_ACCESS_KEY_FILE → reads file path)
  3. Raises ValueError if neither is set

A single Settings instance is built at process start and handed to the
components that need it (DocumentService, blob stores, locks). Required
values are validated eagerly so a misconfigured process fails on boot
rather than on the first request that touches a missing secret.
"""

import os
import logging

logger = logging.getLogger(__name__)


def _read_secret(env_var: str, file_env_var: str | None = None) -> str:
    """Read a secret from env var or Docker secrets file.

    Args:
        env_var: Direct environment variable name (e.g., APP_SECRET_KEY)
        file_env_var: File path env var name (e.g., APP_SECRET_KEY_FILE).
                      If None, defaults to env_var + '_FILE'.

    Returns:
        The secret value.

    Raises:
        ValueError: If neither source provides a value.
    """
    if file_env_var is None:
        file_env_var = f"{env_var}_FILE"

    # Priority 1: Direct env var
    value = os.environ.get(env_var)
    if value:
        return value

    # Priority 2: File-based (Docker secrets pattern)
    file_path = os.environ.get(file_env_var)
    if file_path:
        try:
            with open(file_path, "r") as f:
                value = f.read().strip()
            if value:
                return value
        except FileNotFoundError:
            logger.error(f"Secret file not found: {file_path} (from {file_env_var})")
        except PermissionError:
            logger.error(f"Permission denied reading: {file_path} (from {file_env_var})")

    raise ValueError(
        f"Secret not configured. Set {env_var} env var or {file_env_var} pointing to a file."
    )


def _read_optional_secret(env_var: str) -> str | None:
    try:
        return _read_secret(env_var)
    except ValueError:
        return None


class Settings:
    """Application settings loaded from environment and Docker secrets."""

    def __init__(self):
        # Database
        self.database_url = self._build_database_url()
        self.redis_url = os.environ.get("REDIS_URL") or None

        # Auth
        self.app_secret_key = _read_secret("APP_SECRET_KEY")

        # Blob storage (S3-compatible). No bucket → in-memory store.
        self.s3_bucket = os.environ.get("S3_BUCKET") or None
        self.s3_endpoint = os.environ.get("S3_ENDPOINT") or None
        self.s3_region = os.environ.get("S3_REGION", "auto")
        self.s3_access_key_id: str | None = None
        self.s3_secret_access_key: str | None = None
        if self.s3_bucket:
            self.s3_access_key_id = _read_secret("S3_ACCESS_KEY_ID")
            self.s3_secret_access_key = _read_secret("S3_SECRET_ACCESS_KEY")

        # Document engine tuning
        self.storage_timeout_seconds = float(os.environ.get("STORAGE_TIMEOUT_SECONDS", "10"))
        self.fuzzy_match_threshold = float(os.environ.get("FUZZY_MATCH_THRESHOLD", "60"))
        self.document_lock_timeout_seconds = float(
            os.environ.get("DOCUMENT_LOCK_TIMEOUT_SECONDS", "15")
        )
        self.document_preview_chars = int(os.environ.get("DOCUMENT_PREVIEW_CHARS", "500"))
        self.version_preview_chars = int(os.environ.get("VERSION_PREVIEW_CHARS", "200"))
        self.orphan_blob_grace_seconds = float(os.environ.get("ORPHAN_BLOB_GRACE_SECONDS", "300"))

        # Public config
        self.public_base_url = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000")
        self.cors_origins = [
            origin.strip()
            for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]

        if not 0 <= self.fuzzy_match_threshold <= 100:
            raise ValueError("FUZZY_MATCH_THRESHOLD must be between 0 and 100")

    def _build_database_url(self) -> str:
        """Build async database URL with password from secrets."""
        base_url = os.environ.get(
            "DATABASE_URL", "postgresql+asyncpg://scribe@postgres:5432/scribe"
        )
        password = _read_optional_secret("POSTGRES_PASSWORD")
        if password is None:
            logger.warning("POSTGRES_PASSWORD not set, using DATABASE_URL as-is")
            return base_url
        # Insert password into URL: postgresql+asyncpg://user@host → user:pass@host
        if "://" in base_url and "@" in base_url:
            scheme_user, rest = base_url.split("@", 1)
            if ":" not in scheme_user.split("://")[1]:
                base_url = f"{scheme_user}:{password}@{rest}"
        return base_url

    @property
    def uses_s3(self) -> bool:
        return self.s3_bucket is not None


settings = Settings()
