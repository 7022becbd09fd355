"""Kafka Admin façade built on kafka-python."""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Iterable, List, Optional, get_args

from kafka.admin import (  # kafka-python
    ACL,
    ACLFilter,
    ACLOperation,
    ACLPermissionType,
    ACLResourcePatternType,
    ConfigResource,
    ConfigResourceType,
    KafkaAdminClient,
    NewPartitions,
    NewTopic,
    ResourcePattern,
    ResourcePatternFilter,
    ResourceType,
)
from kafka.errors import (
    KafkaError,
    KafkaTimeoutError,
    NoBrokersAvailable,
    NodeNotReadyError,
    TopicAlreadyExistsError,
    for_code,
)

from kafka_provisioner.core.config import Settings, get_settings
from kafka_provisioner.core.exceptions import ApplyFailure
from kafka_provisioner.domain.models.acl import Acl, AclOperation, AclPermission
from kafka_provisioner.domain.models.topic import Topic

logger = logging.getLogger(__name__)

_RETRYABLE = (KafkaTimeoutError, NoBrokersAvailable, NodeNotReadyError)

# DescribeConfigs v1+ config_source value for a config set on the topic itself.
_DYNAMIC_TOPIC_CONFIG = 1

_ACL_RESOURCE_TYPES = ("TOPIC", "GROUP", "CLUSTER", "TRANSACTIONAL_ID")
_ACL_OPERATIONS = frozenset(get_args(AclOperation))
_ACL_PERMISSIONS = frozenset(get_args(AclPermission))


class KafkaAdminFacade:
    """
    Lazy, retrying adapter around kafka-python's admin API.
    Avoids network work at construction time and survives transient broker
    unavailability while connecting.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: KafkaAdminClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._admin: KafkaAdminClient | None = client
        self._lock = threading.RLock()

    # ---------- bootstrap common kwargs ----------
    def _common_kwargs(self) -> dict:
        s = self._settings
        kw = dict(
            bootstrap_servers=s.kafka_bootstrap,
            client_id=s.client_id,
            request_timeout_ms=s.request_timeout_ms,
            metadata_max_age_ms=s.metadata_max_age_ms,
            api_version_auto_timeout_ms=s.api_version_auto_timeout_ms,
            security_protocol=s.security_protocol,
        )
        if s.kafka_api_version:
            kw["api_version"] = tuple(int(p) for p in s.kafka_api_version.split("."))
        if s.security_protocol.startswith("SASL"):
            kw.update(
                sasl_mechanism=s.sasl_mechanism,
                sasl_plain_username=s.sasl_plain_username,
                sasl_plain_password=s.sasl_plain_password,
            )
        if s.security_protocol.endswith("SSL"):
            kw.update(ssl_cafile=s.ssl_cafile)
        return kw

    def _ensure_admin(self) -> KafkaAdminClient:
        admin = self._admin
        if admin is not None:
            return admin

        # Observation and apply workers share this facade; only one of them connects.
        with self._lock:
            if self._admin is not None:
                return self._admin
            last_exc: Exception | None = None
            for attempt in range(1, self._settings.admin_connect_max_tries + 1):
                try:
                    self._admin = KafkaAdminClient(**self._common_kwargs())
                    return self._admin
                except _RETRYABLE as exc:
                    last_exc = exc
                    logger.warning("Admin connect attempt %d failed: %s", attempt, exc)
                    time.sleep(self._settings.admin_connect_backoff_sec * attempt)
            # give up
            raise last_exc or RuntimeError("Failed to create KafkaAdminClient")

    def close(self) -> None:
        with self._lock:
            if self._admin is not None:
                self._admin.close()
                self._admin = None

    # ---------- Topics ----------------------------------------------------

    def list_topics(self, prefix: str) -> List[Topic]:
        """Return topics under *prefix* with their explicitly set configs."""
        admin = self._ensure_admin()
        names = sorted(n for n in admin.list_topics() if n.startswith(prefix))
        if not names:
            return []
        configs = self._topic_configs(names)
        out = []
        for t in admin.describe_topics(names):
            _raise_for_code(t.get("error_code", 0), f"describe topic {t.get('topic')}")
            parts = t.get("partitions") or []
            rf = len(parts[0]["replicas"]) if parts else 0
            out.append(
                Topic(
                    name=t["topic"],
                    partitions=max(len(parts), 1),
                    replication_factor=max(rf, 1),
                    configs=configs.get(t["topic"], {}),
                )
            )
        return out

    def create_topic(self, topic: Topic) -> None:
        new_topic = NewTopic(
            name=topic.name,
            num_partitions=topic.partitions,
            replication_factor=topic.replication_factor,
            topic_configs=dict(topic.configs),
        )
        try:
            response = self._ensure_admin().create_topics([new_topic])
        except TopicAlreadyExistsError:
            # idempotent: someone else created it between observe and apply
            logger.info("Topic %s already exists", topic.name)
            return
        except KafkaError as exc:
            raise ApplyFailure("topic", topic.name, str(exc)) from exc
        for err in getattr(response, "topic_errors", None) or ():
            code, message = err[1], (err[2] if len(err) > 2 else None)
            if for_code(code) is TopicAlreadyExistsError:
                logger.info("Topic %s already exists", topic.name)
                continue
            _raise_apply_failure(code, message, "topic", topic.name)

    def alter_topic(self, topic: Topic) -> None:
        """Grow partitions and/or update configs in place.

        ``alter_configs`` replaces every dynamic config of the topic, so the
        requested keys are merged over the ones currently set.
        """
        admin = self._ensure_admin()
        current = self._describe_one(topic.name)
        try:
            if topic.partitions > current.partitions:
                response = admin.create_partitions(
                    {topic.name: NewPartitions(total_count=topic.partitions)}
                )
                for err in getattr(response, "topic_errors", None) or ():
                    _raise_apply_failure(err[1], err[2] if len(err) > 2 else None, "topic", topic.name)
            drift = topic.config_drift(current)
            if drift:
                merged = {**current.configs, **drift}
                response = admin.alter_configs(
                    [ConfigResource(ConfigResourceType.TOPIC, topic.name, configs=merged)]
                )
                for res in getattr(response, "resources", None) or ():
                    _raise_apply_failure(res[0], res[1], "topic", topic.name)
        except KafkaError as exc:
            raise ApplyFailure("topic", topic.name, str(exc)) from exc

    def _describe_one(self, name: str) -> Topic:
        for t in self.list_topics(name):
            if t.name == name:
                return t
        raise ApplyFailure("topic", name, "topic does not exist")

    def _topic_configs(self, names: Iterable[str]) -> Dict[str, Dict[str, str]]:
        resources = [ConfigResource(ConfigResourceType.TOPIC, n) for n in names]
        out: Dict[str, Dict[str, str]] = {}
        for response in self._ensure_admin().describe_configs(resources):
            for res in response.resources:
                error_code, error_message, _rtype, name, entries = res[:5]
                _raise_for_code(error_code, f"describe configs {name}: {error_message}")
                out[name] = {
                    e[0]: e[1] for e in entries if _is_topic_override(e) and e[1] is not None
                }
        return out

    # ---------- ACLs ------------------------------------------------------

    def list_acls(self, prefix: str) -> List[Acl]:
        """Return ACL bindings whose resource name starts with *prefix*."""
        acl_filter = ACLFilter(
            principal=None,
            host=None,
            operation=ACLOperation.ANY,
            permission_type=ACLPermissionType.ANY,
            resource_pattern=ResourcePatternFilter(
                ResourceType.ANY, None, ACLResourcePatternType.ANY
            ),
        )
        result = self._ensure_admin().describe_acls(acl_filter)
        bindings, error = result if isinstance(result, tuple) else (result, None)
        if error is not None and getattr(error, "errno", 0):
            raise KafkaError(f"describe_acls failed: {error}")
        out = []
        for b in bindings:
            pattern = b.resource_pattern
            if pattern.resource_type.name not in _ACL_RESOURCE_TYPES:
                continue
            if pattern.pattern_type.name not in ("LITERAL", "PREFIXED"):
                continue
            if not pattern.resource_name.startswith(prefix):
                continue
            if b.operation.name not in _ACL_OPERATIONS or b.permission_type.name not in _ACL_PERMISSIONS:
                logger.debug(
                    "Ignoring binding on %s with unsupported operation %s/%s",
                    pattern.resource_name, b.operation.name, b.permission_type.name,
                )
                continue
            out.append(
                Acl(
                    principal=b.principal,
                    resource_type=pattern.resource_type.name,
                    resource_name=pattern.resource_name,
                    pattern_type=pattern.pattern_type.name,
                    operation=b.operation.name,
                    permission=b.permission_type.name,
                    host=b.host,
                )
            )
        return out

    def create_acl(self, acl: Acl) -> None:
        binding = ACL(
            principal=acl.principal,
            host=acl.host,
            operation=ACLOperation[acl.operation],
            permission_type=ACLPermissionType[acl.permission],
            resource_pattern=ResourcePattern(
                ResourceType[acl.resource_type],
                acl.resource_name,
                ACLResourcePatternType[acl.pattern_type],
            ),
        )
        try:
            result = self._ensure_admin().create_acls([binding])
        except KafkaError as exc:
            raise ApplyFailure("acl", acl.describe(), str(exc)) from exc
        failed = result.get("failed") or []
        if failed:
            _binding, error = failed[0]
            raise ApplyFailure("acl", acl.describe(), str(error))


def _is_topic_override(entry) -> bool:
    """True for config entries set on the topic rather than inherited."""
    flag = entry[3]
    if isinstance(flag, bool):  # v0: is_default
        return not flag
    return flag == _DYNAMIC_TOPIC_CONFIG


def _raise_for_code(code: Optional[int], context: str) -> None:
    if code:
        raise for_code(code)(context)


def _raise_apply_failure(code: Optional[int], message: Optional[str], kind: str, identity: str) -> None:
    if code:
        error = for_code(code)
        raise ApplyFailure(kind, identity, f"{error.__name__}: {message}" if message else error.__name__)
