"""iam-authz — identity and resource policy decision engine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import iam_authz as authz
>>> engine = authz.DecisionEngine()
>>> registry = engine.reload(identities=[{
...     "id": "hello-fn",
...     "trust_policy": {"id": "trust", "statements": [
...         {"effect": "Allow", "principals": ["gateway-service"], "actions": ["sts:AssumeRole"]}]},
...     "permission_policies": [{"id": "logs", "statements": [
...         {"effect": "Allow", "actions": ["logs:PutLogEvents"],
...          "resources": ["/aws/lambda/hello-fn/*"]}]}],
... }])
>>> engine.check("gateway-service", "hello-fn", "logs:PutLogEvents",
...              "/aws/lambda/hello-fn/stream1").allowed
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from iam_authz.policies.document import (
    Condition,
    Effect,
    InvalidPolicyDocument,
    Policy,
    Statement,
)
from iam_authz.policies.matcher import (
    matches_action,
    matches_condition,
    matches_principal,
    matches_resource,
)
from iam_authz.policies.parser import PolicyParser

# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
from iam_authz.evaluation.decision import (
    AuthorizationRequest,
    Decision,
    DecisionRecord,
    DenialReason,
)
from iam_authz.evaluation.permission import combine, evaluate
from iam_authz.evaluation.trust import can_assume, evaluate_trust

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
from iam_authz.engine.config_loader import AuthzConfig, ConfigError, ConfigLoader
from iam_authz.engine.decision_engine import DecisionEngine, RegistryState
from iam_authz.engine.registry import (
    Identity,
    Registry,
    Resource,
    UnknownIdentity,
    load_registry,
)

# ---------------------------------------------------------------------------
# Audit and handler
# ---------------------------------------------------------------------------
from iam_authz.audit.logger import AuditLogger
from iam_authz.handler.greeting import GreetingHandler

__all__ = [
    "__version__",
    # Policies
    "Condition",
    "Effect",
    "InvalidPolicyDocument",
    "Policy",
    "PolicyParser",
    "Statement",
    "matches_action",
    "matches_condition",
    "matches_principal",
    "matches_resource",
    # Evaluation
    "AuthorizationRequest",
    "Decision",
    "DecisionRecord",
    "DenialReason",
    "can_assume",
    "combine",
    "evaluate",
    "evaluate_trust",
    # Engine
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
    # Audit and handler
    "AuditLogger",
    "GreetingHandler",
]
