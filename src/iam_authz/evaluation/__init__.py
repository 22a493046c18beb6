"""Trust and permission evaluation over immutable policy data.

Exports the request/decision value types and the pure evaluation
functions used by the decision engine.
"""
from __future__ import annotations

from iam_authz.evaluation.decision import (
    AuthorizationRequest,
    Decision,
    DecisionRecord,
    DenialReason,
)
from iam_authz.evaluation.permission import combine, evaluate
from iam_authz.evaluation.trust import can_assume, evaluate_trust

__all__ = [
    "AuthorizationRequest",
    "Decision",
    "DecisionRecord",
    "DenialReason",
    "can_assume",
    "combine",
    "evaluate",
    "evaluate_trust",
]
