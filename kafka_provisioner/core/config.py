# kafka_provisioner/core/config.py
import json
from functools import lru_cache
from typing import Annotated, List

from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator


def _split_list(v) -> List[str]:
    """Accept JSON array or comma-separated string."""
    if v is None:
        return []
    if isinstance(v, (list, tuple, set, frozenset)):
        return [str(s).strip() for s in v if str(s).strip()]
    if isinstance(v, str):
        try:
            parsed = json.loads(v)
            if isinstance(parsed, list):
                return [str(s).strip() for s in parsed if str(s).strip()]
        except ValueError:
            pass
        return [s.strip() for s in v.split(",") if s.strip()]
    return list(v)


class Settings(BaseSettings):
    """
    Central provisioner settings loaded from environment variables (and .env).

    Notes
    -----
    - Every variable is prefixed with ``PROVISIONER_``.
    - `immutable_topic_configs` supports either JSON or a comma string:
        PROVISIONER_IMMUTABLE_TOPIC_CONFIGS='["cleanup.policy"]'
      or:
        PROVISIONER_IMMUTABLE_TOPIC_CONFIGS='cleanup.policy,compression.type'
    - `cors_allow_origins` accepts JSON array or comma-separated string.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROVISIONER_",
        extra="ignore",
    )

    # ---------- Kafka client/admin ----------
    kafka_bootstrap: str = Field("localhost:9092")
    kafka_api_version: str | None = None
    client_id: str = "kafka-provisioner"

    # Client timeouts (ms)
    request_timeout_ms: int = 20_000
    metadata_max_age_ms: int = 30_000
    api_version_auto_timeout_ms: int = 10_000

    # Admin connection retry
    admin_connect_max_tries: int = 8
    admin_connect_backoff_sec: float = 1.5

    # ---------- Security (set when using SASL/SSL) ----------
    security_protocol: str = "PLAINTEXT"   # e.g. "SASL_SSL", "SSL"
    sasl_mechanism: str | None = None
    sasl_plain_username: str | None = None
    sasl_plain_password: str | None = None
    ssl_cafile: str | None = None

    # ---------- Schema Registry ----------
    schema_registry_url: str | None = None
    schema_registry_username: str | None = None
    schema_registry_password: str | None = None
    schema_registry_timeout_sec: float = 10.0

    # ---------- Reconciliation ----------
    observe_max_workers: int = Field(
        default=3, ge=1, le=16,
        description="Parallel observation calls (one per resource kind)."
    )
    apply_max_workers: int = Field(
        default=8, ge=1, le=64,
        description="Parallel apply calls within one dependency stage."
    )
    allow_partition_increase: bool = Field(
        default=True,
        description="Treat a partition-count increase as a safe in-place update."
    )
    immutable_topic_configs: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Topic config keys whose change is flagged INCOMPATIBLE."
    )
    create_only: bool = Field(
        default=False,
        description="Only ever emit CREATE actions; drift on existing resources is ignored."
    )

    # ---------- HTTP surface ----------
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    cors_allow_origins: Annotated[list[str] | None, NoDecode] = None

    # ---------- Logging ----------
    log_level: str = "INFO"

    @field_validator("cors_allow_origins", mode="before")
    def _parse_cors_origins(cls, v):
        if v is None:
            return None
        return _split_list(v)

    @field_validator("immutable_topic_configs", mode="before")
    def _parse_immutable_topic_configs(cls, v):
        """Config keys are case-insensitive; store them lower-cased."""
        return [s.lower() for s in _split_list(v)]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
