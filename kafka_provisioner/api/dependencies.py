"""Global reusable FastAPI dependencies (JWT, cluster client, services)."""
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from kafka_provisioner.core.config import get_settings
from kafka_provisioner.core.security import decode_jwt
from kafka_provisioner.domain.services.provisioner import ProvisioningService
from kafka_provisioner.infra.cluster import KafkaClusterClient
from kafka_provisioner.infra.kafka.admin import KafkaAdminFacade
from kafka_provisioner.infra.schema_registry.client import SchemaRegistryClient


async def require_jwt(
    authorization: str | None = Header(default=None, alias="Authorization")
) -> dict:
    """Validate a Bearer JWT and return the decoded claims."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.removeprefix("Bearer ").strip()
    return decode_jwt(token)


@lru_cache
def get_cluster_client() -> KafkaClusterClient:
    """Shared client; the admin connection is opened on first use."""
    settings = get_settings()
    registry = SchemaRegistryClient(settings=settings) if settings.schema_registry_url else None
    return KafkaClusterClient(KafkaAdminFacade(settings), registry)


def get_provisioning_service(
    client: KafkaClusterClient = Depends(get_cluster_client),
) -> ProvisioningService:
    return ProvisioningService(client, get_settings())
