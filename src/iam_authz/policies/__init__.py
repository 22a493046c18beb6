"""Policy document model, matching primitives and document parsing."""
from __future__ import annotations

from iam_authz.policies.document import (
    Condition,
    Effect,
    InvalidPolicyDocument,
    Policy,
    Statement,
)
from iam_authz.policies.parser import PolicyParser

__all__ = [
    "Condition",
    "Effect",
    "InvalidPolicyDocument",
    "Policy",
    "PolicyParser",
    "Statement",
]
