"""Minimal Schema Registry REST client (httpx)."""
from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

import httpx

from kafka_provisioner.core.config import Settings, get_settings
from kafka_provisioner.core.exceptions import ApplyFailure
from kafka_provisioner.domain.models.schema import Schema, SchemaReference

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"


class SchemaRegistryClient:
    """Lists and registers subjects on a Confluent-compatible Schema Registry."""

    def __init__(
        self,
        base_url: str | None = None,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        base_url = base_url or settings.schema_registry_url
        if not base_url:
            raise ValueError("schema registry URL is not configured")
        auth = None
        if settings.schema_registry_username:
            auth = (settings.schema_registry_username, settings.schema_registry_password or "")
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=auth,
            timeout=settings.schema_registry_timeout_sec,
            headers={"Accept": CONTENT_TYPE, "Content-Type": CONTENT_TYPE},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SchemaRegistryClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- Queries ----------
    def list_subjects(self, prefix: str) -> List[str]:
        # subjectPrefix is ignored by older registries, so filter here too
        resp = self._http.get("/subjects", params={"subjectPrefix": prefix})
        resp.raise_for_status()
        return sorted(s for s in resp.json() if s.startswith(prefix))

    def latest(self, subject: str) -> Schema:
        resp = self._http.get(f"/subjects/{quote(subject, safe='')}/versions/latest")
        resp.raise_for_status()
        body = resp.json()
        return Schema(
            subject=body.get("subject", subject),
            schema_type=body.get("schemaType", "AVRO"),
            schema_str=body["schema"],
            references=[SchemaReference(**r) for r in body.get("references") or []],
        )

    def list_schemas(self, prefix: str) -> List[Schema]:
        return [self.latest(s) for s in self.list_subjects(prefix)]

    # ---------- Commands ----------
    def register(self, schema: Schema) -> int:
        """Register *schema* as the next version of its subject; return the schema id."""
        payload = {"schema": schema.schema_str}
        if schema.schema_type != "AVRO":
            payload["schemaType"] = schema.schema_type
        if schema.references:
            payload["references"] = [r.model_dump() for r in schema.references]
        try:
            resp = self._http.post(
                f"/subjects/{quote(schema.subject, safe='')}/versions", json=payload
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ApplyFailure("schema", schema.subject, _error_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise ApplyFailure("schema", schema.subject, str(exc)) from exc
        schema_id = resp.json().get("id")
        logger.debug("Registered %s as schema id %s", schema.subject, schema_id)
        return schema_id


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    return f"HTTP {resp.status_code}: {body.get('message', body)}"
