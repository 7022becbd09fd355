"""Derive the resources a domain owns from its application contract."""
from __future__ import annotations

import logging
from typing import Dict, List

from kafka_provisioner.domain.models.acl import Acl
from kafka_provisioner.domain.models.app_spec import AppSpec, Channel
from kafka_provisioner.domain.models.resource import Resource, ResourceKind, in_namespace
from kafka_provisioner.domain.models.schema import Schema
from kafka_provisioner.domain.models.topic import Topic

logger = logging.getLogger(__name__)

PUBLIC = "._public."
PROTECTED = "._protected."


def topic_name(spec: AppSpec, channel: Channel) -> str:
    if channel.name.startswith("/"):
        return channel.name[1:]
    if channel.name.startswith(f"{spec.id}."):
        return channel.name
    return f"{spec.id}.{channel.name}"


def owner_principal(spec: AppSpec) -> str:
    return f"User:{spec.id}"


def owner_acls(spec: AppSpec) -> List[Acl]:
    """Prefixed grants letting the domain's own principal run its apps.

    The prefix ends with a dot so ``a.b`` is never granted ``a.bc.*``.
    """
    principal = owner_principal(spec)
    prefix = f"{spec.id}."
    return [
        Acl(principal=principal, resource_type="TOPIC", resource_name=prefix,
            pattern_type="PREFIXED", operation="ALL"),
        Acl(principal=principal, resource_type="GROUP", resource_name=prefix,
            pattern_type="PREFIXED", operation="READ"),
        Acl(principal=principal, resource_type="TRANSACTIONAL_ID", resource_name=prefix,
            pattern_type="PREFIXED", operation="WRITE"),
        Acl(principal=principal, resource_type="TRANSACTIONAL_ID", resource_name=prefix,
            pattern_type="PREFIXED", operation="DESCRIBE"),
    ]


def consumer_acls(name: str, channel: Channel) -> List[Acl]:
    if PUBLIC in f".{name}.":
        principals = ["User:*"]
    elif PROTECTED in f".{name}.":
        principals = channel.grant_access
    else:
        principals = []
    return [
        Acl(principal=p, resource_type="TOPIC", resource_name=name, operation=op)
        for p in principals
        for op in ("READ", "DESCRIBE")
    ]


def derive_desired(spec: AppSpec) -> Dict[ResourceKind, List[Resource]]:
    """Return the required resources per kind; kinds with nothing required are left out."""
    topics: List[Resource] = []
    schemas: List[Resource] = []
    acls: List[Resource] = list(owner_acls(spec))

    for channel in spec.channels:
        name = topic_name(spec, channel)
        if not in_namespace(name, spec.id):
            logger.debug("Channel %s is owned by another domain; not provisioning", name)
            continue

        topics.append(
            Topic(
                name=name,
                partitions=channel.bindings.partitions,
                replication_factor=channel.bindings.replicas,
                configs=channel.bindings.configs,
            )
        )
        acls.extend(consumer_acls(name, channel))

        op = channel.publish or channel.subscribe
        if op is not None and op.message is not None:
            schemas.append(
                Schema(
                    subject=f"{name}-value",
                    schema_type=op.message.schema_type,
                    schema_str=op.message.schema_str,
                    references=op.message.references,
                )
            )

    desired = {
        ResourceKind.SCHEMA: schemas,
        ResourceKind.TOPIC: topics,
        ResourceKind.ACL: acls,
    }
    return {kind: resources for kind, resources in desired.items() if resources}
