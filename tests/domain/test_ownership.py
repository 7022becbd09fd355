from __future__ import annotations

from kafka_provisioner.domain.models import ResourceKind
from kafka_provisioner.domain.models.app_spec import AppSpec
from kafka_provisioner.domain.models.resource import in_namespace
from kafka_provisioner.domain.services.ownership import derive_desired, topic_name

USER_SIGNED_UP = '{"type":"record","name":"UserSignedUp","fields":[{"name":"id","type":"string"}]}'


def app_spec() -> AppSpec:
    return AppSpec.model_validate(
        {
            "id": "simple.schema_demo",
            "channels": [
                {
                    "name": "_public.user_signed_up",
                    "publish": {"message": {"schema_str": USER_SIGNED_UP}},
                    "bindings": {"partitions": 3, "replicas": 1, "configs": {"cleanup.policy": "delete"}},
                },
                {
                    "name": "_protected.user_info",
                    "publish": {},
                    "grant_access": ["some.other.domain", "User:audit"],
                },
                {"name": "simple.schema_demo._private.user_checkout"},
                {
                    "name": "/london.hammersmith.transport._public.tube",
                    "subscribe": {"message": {"schema_str": "{}"}},
                },
            ],
        }
    )


def test_channel_names_are_qualified_with_domain_id() -> None:
    spec = app_spec()

    assert [topic_name(spec, c) for c in spec.channels] == [
        "simple.schema_demo._public.user_signed_up",
        "simple.schema_demo._protected.user_info",
        "simple.schema_demo._private.user_checkout",
        "london.hammersmith.transport._public.tube",
    ]


def test_only_owned_channels_become_topics() -> None:
    desired = derive_desired(app_spec())

    topics = {t.name: t for t in desired[ResourceKind.TOPIC]}
    assert sorted(topics) == [
        "simple.schema_demo._private.user_checkout",
        "simple.schema_demo._protected.user_info",
        "simple.schema_demo._public.user_signed_up",
    ]
    signed_up = topics["simple.schema_demo._public.user_signed_up"]
    assert (signed_up.partitions, signed_up.replication_factor) == (3, 1)
    assert signed_up.configs == {"cleanup.policy": "delete"}


def test_message_schemas_use_topic_name_subjects() -> None:
    desired = derive_desired(app_spec())

    assert [s.subject for s in desired[ResourceKind.SCHEMA]] == [
        "simple.schema_demo._public.user_signed_up-value"
    ]


def test_acls_follow_channel_visibility() -> None:
    acls = derive_desired(app_spec())[ResourceKind.ACL]

    owner = [a for a in acls if a.principal == "User:simple.schema_demo"]
    assert {(a.resource_type, a.operation) for a in owner} == {
        ("TOPIC", "ALL"),
        ("GROUP", "READ"),
        ("TRANSACTIONAL_ID", "WRITE"),
        ("TRANSACTIONAL_ID", "DESCRIBE"),
    }
    assert all(a.pattern_type == "PREFIXED" and a.resource_name == "simple.schema_demo." for a in owner)

    literal = {(a.principal, a.resource_name, a.operation) for a in acls if a.pattern_type == "LITERAL"}
    assert literal == {
        ("User:*", "simple.schema_demo._public.user_signed_up", "READ"),
        ("User:*", "simple.schema_demo._public.user_signed_up", "DESCRIBE"),
        ("User:some.other.domain", "simple.schema_demo._protected.user_info", "READ"),
        ("User:some.other.domain", "simple.schema_demo._protected.user_info", "DESCRIBE"),
        ("User:audit", "simple.schema_demo._protected.user_info", "READ"),
        ("User:audit", "simple.schema_demo._protected.user_info", "DESCRIBE"),
    }


def test_every_derived_resource_is_inside_the_namespace() -> None:
    desired = derive_desired(app_spec())

    assert all(
        in_namespace(r.namespace_key(), "simple.schema_demo")
        for resources in desired.values()
        for r in resources
    )


def test_owner_grants_stop_at_the_domain_boundary() -> None:
    desired = derive_desired(AppSpec(id="a.b", channels=[{"name": "_private.x"}]))

    prefixed = [a for a in desired[ResourceKind.ACL] if a.pattern_type == "PREFIXED"]
    assert prefixed
    assert not any("a.bc.topic".startswith(a.resource_name) for a in prefixed)
    assert all("a.b.topic".startswith(a.resource_name) for a in prefixed)


def test_kinds_without_resources_are_left_out() -> None:
    desired = derive_desired(AppSpec(id="a.b", channels=[{"name": "_private.x"}]))

    assert set(desired) == {ResourceKind.TOPIC, ResourceKind.ACL}
