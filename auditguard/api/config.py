"""
AuditGuard - Service Configuration

Settings come from environment variables; a ``.env`` file in the working
directory is loaded first. Development mode degrades gracefully when Redis
or the reasoning service is not configured, production mode refuses to
start without them.
"""

import os
from typing import List, Optional
from dataclasses import dataclass, field
import logging

from dotenv import load_dotenv

from .domain.exceptions import ConfigurationError
from .domain.value_objects import DeploymentMode

logger = logging.getLogger(__name__)


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass
class ServiceConfig:
    """Configuration for the API, the worker and the CLI."""
    mode: DeploymentMode = DeploymentMode.DEVELOPMENT

    # Database
    database_url: str = "sqlite+aiosqlite:///auditguard.db"

    # Rate limiting (Redis)
    redis_url: Optional[str] = None
    audit_rate_limit: int = 5
    audit_rate_window_seconds: int = 3600

    # Reasoning service
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    audit_model: str = "gpt-4o-mini"
    audit_timeout_seconds: float = 30.0

    # Workflow engine (Celery)
    broker_url: str = "redis://localhost:6379/0"
    result_backend: Optional[str] = None
    workflow_max_retries: int = 3

    # Outbox relay
    outbox_poll_interval_seconds: float = 1.0
    outbox_batch_size: int = 100
    outbox_max_retries: int = 5
    outbox_retention_hours: int = 72
    outbox_sweep_interval_seconds: float = 60.0

    # HTTP surface
    internal_api_token: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.mode == DeploymentMode.PRODUCTION

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'ServiceConfig':
        """Build the configuration from the environment."""
        load_dotenv(dotenv_path=dotenv_path, override=False)

        redis_url = os.getenv('REDIS_URL') or None
        cors = os.getenv('CORS_ORIGINS', '')

        config = cls(
            mode=DeploymentMode.from_string(os.getenv('AUDITGUARD_ENV')),
            database_url=os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///auditguard.db'),
            redis_url=redis_url,
            audit_rate_limit=_int('AUDIT_RATE_LIMIT', 5),
            audit_rate_window_seconds=_int('AUDIT_RATE_WINDOW_SECONDS', 3600),
            openai_api_key=os.getenv('OPENAI_API_KEY') or None,
            openai_base_url=os.getenv('OPENAI_BASE_URL') or None,
            audit_model=os.getenv('AUDIT_MODEL', 'gpt-4o-mini'),
            audit_timeout_seconds=_float('AUDIT_TIMEOUT_SECONDS', 30.0),
            broker_url=os.getenv('CELERY_BROKER_URL') or redis_url or 'redis://localhost:6379/0',
            result_backend=os.getenv('CELERY_RESULT_BACKEND') or None,
            workflow_max_retries=_int('WORKFLOW_MAX_RETRIES', 3),
            outbox_poll_interval_seconds=_float('OUTBOX_POLL_INTERVAL_SECONDS', 1.0),
            outbox_batch_size=_int('OUTBOX_BATCH_SIZE', 100),
            outbox_max_retries=_int('OUTBOX_MAX_RETRIES', 5),
            outbox_retention_hours=_int('OUTBOX_RETENTION_HOURS', 72),
            outbox_sweep_interval_seconds=_float('OUTBOX_SWEEP_INTERVAL_SECONDS', 60.0),
            internal_api_token=os.getenv('INTERNAL_API_TOKEN') or None,
            cors_origins=[o.strip() for o in cors.split(',') if o.strip()],
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ConfigurationError for settings production cannot run without."""
        if self.audit_rate_limit < 1:
            raise ConfigurationError("AUDIT_RATE_LIMIT must be at least 1")
        if self.audit_rate_window_seconds < 1:
            raise ConfigurationError("AUDIT_RATE_WINDOW_SECONDS must be at least 1")

        if not self.is_production:
            if not self.redis_url:
                logger.warning("REDIS_URL not set, rate limiting is disabled")
            if not self.openai_api_key:
                logger.warning("OPENAI_API_KEY not set, automated audits will fail")
            return

        missing = [
            name for name, value in (
                ('OPENAI_API_KEY', self.openai_api_key),
                ('REDIS_URL', self.redis_url),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings in production: {', '.join(missing)}")


# Global config instance
_config: Optional[ServiceConfig] = None


def get_service_config() -> ServiceConfig:
    """Get or create service configuration"""
    global _config
    if _config is None:
        _config = ServiceConfig.from_env()
    return _config


def set_service_config(config: Optional[ServiceConfig]) -> None:
    """Replace the global configuration (for testing)."""
    global _config
    _config = config
