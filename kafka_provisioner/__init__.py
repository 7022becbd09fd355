"""Provision Kafka topics, ACLs and schemas from an application's messaging contract."""

__version__ = "0.1.0"
