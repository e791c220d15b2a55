"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
import logging
import secrets
from typing import Optional, List, Tuple
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Runtime
    # ============================================================
    environment: str = Field("development", description="development / production / test")

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: str = Field("sqlite:///./blogauth.db", description="SQLAlchemy database URL")
    database_pool_size: int = Field(5, description="Database connection pool size (non-SQLite only)")
    database_max_overflow: int = Field(10, description="Max overflow connections (non-SQLite only)")

    # ============================================================
    # Admin Session Tokens (JWT)
    # ============================================================
    jwt_secret: Optional[str] = Field(None, description="HMAC secret for admin session tokens")
    jwt_issuer: str = Field("blogauth", description="Token issuer claim")
    jwt_audience: str = Field("blogauth-admin", description="Token audience claim")
    admin_session_minutes: int = Field(
        60,
        description="Admin session lifetime (kept short: admin tokens carry full privileges)"
    )

    # ============================================================
    # Challenge-Response Protocol
    # ============================================================
    challenge_ttl_seconds: int = Field(300, description="Freshness window for signed challenges")
    challenge_single_use: bool = Field(
        False,
        description="Reject a challenge after one successful login (opt-in replay protection)"
    )

    # ============================================================
    # Rate Limiting ("<max requests>/<window seconds>")
    # ============================================================
    rate_limit_enabled: bool = Field(True, description="Enable rate limiting")
    rate_limit_login: str = Field("5/60", description="Challenge + verify endpoints")
    rate_limit_key_management: str = Field("3/60", description="Key registration + rotation endpoints")
    rate_limit_general: str = Field("100/900", description="All other /api endpoints")
    rate_limit_exempt_ips: str = Field("", description="Comma-separated IPs that bypass rate limits")

    # ============================================================
    # Audit Trail
    # ============================================================
    audit_store: str = Field("database", description="Audit store: database or file")
    audit_log_file: str = Field("logs/audit.log", description="JSON-lines audit file (file store)")
    audit_log_max_bytes: int = Field(10 * 1024 * 1024, description="Rotate audit file at this size")
    audit_log_backup_count: int = Field(5, description="Rotated audit files to keep")
    audit_console: bool = Field(True, description="Mirror audit events on the security.audit logger")

    # ============================================================
    # Bootstrap
    # ============================================================
    admin_setup_token: Optional[str] = Field(None, description="Token required by scripts/setup_admin.py")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated CORS allowed origins"
    )
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def rate_limit_exempt_ip_set(self) -> frozenset:
        return frozenset(ip.strip() for ip in self.rate_limit_exempt_ips.split(",") if ip.strip())

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def challenge_ttl_ms(self) -> int:
        return self.challenge_ttl_seconds * 1000


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    A missing JWT_SECRET is replaced with a random per-process secret so the
    service still starts in development; tokens then die with the process.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        if not _settings.jwt_secret:
            _settings.jwt_secret = secrets.token_urlsafe(32)
            logger.warning("JWT_SECRET not set - using a random per-process secret")
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()


def parse_rate_limit(value: str) -> Tuple[int, int]:
    """
    Parse a "<max>/<window seconds>" rate limit string.

    >>> parse_rate_limit("5/60")
    (5, 60)
    """
    try:
        max_part, window_part = value.split("/", 1)
        max_requests, window_seconds = int(max_part), int(window_part)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid rate limit '{value}': expected '<max>/<seconds>'") from e
    if max_requests < 1 or window_seconds < 1:
        raise ValueError(f"Invalid rate limit '{value}': values must be positive")
    return max_requests, window_seconds


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings (call once at process start)."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
