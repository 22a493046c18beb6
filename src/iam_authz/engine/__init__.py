"""Decision engine, registry snapshots and configuration loading."""
from __future__ import annotations

from iam_authz.engine.config_loader import AuthzConfig, ConfigError, ConfigLoader
from iam_authz.engine.decision_engine import DecisionEngine, RegistryState
from iam_authz.engine.registry import (
    Identity,
    Registry,
    Resource,
    UnknownIdentity,
    load_registry,
)

__all__ = [
    "AuthzConfig",
    "ConfigError",
    "ConfigLoader",
    "DecisionEngine",
    "Identity",
    "Registry",
    "RegistryState",
    "Resource",
    "UnknownIdentity",
    "load_registry",
]
