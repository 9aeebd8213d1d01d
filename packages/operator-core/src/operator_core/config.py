"""Environment-based configuration for the operator.

All settings can be overridden via environment variables with the
REDIS_OPERATOR_ prefix. For example:
    REDIS_OPERATOR_MANIFESTS_DIR=/etc/redis-operator/clusters
    REDIS_OPERATOR_WORKERS=8
    REDIS_OPERATOR_REDIS_PASSWORD=secret
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OperatorSettings(BaseSettings):
    """Operator runtime configuration."""

    # Desired state
    manifests_dir: Path = Path("manifests")

    # Controller loop
    workers: int = Field(default=4, ge=1)
    resync_seconds: float = Field(default=30.0, gt=0)
    pass_timeout_seconds: float = Field(default=60.0, gt=0)
    error_requeue_seconds: float = Field(default=10.0, gt=0)

    # Redis connections
    redis_port: int = 6379
    redis_password: str | None = None
    redis_socket_timeout: float = Field(default=5.0, gt=0)
    redis_image: str = "redis:7.2"

    # Failover
    failover_flush_data: bool = False
    failover_hard_reset: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="REDIS_OPERATOR_")
