"""Trust evaluator.

Decides whether a principal may assume an identity, using only the
identity's trust policy.  An identity without a trust policy can never be
assumed, whatever its permission policies say.

A trust statement matches when its principals match the caller, its
actions match the identity's assume action, and its condition (if any) is
satisfied by the request context.  Resources are not consulted.  An
explicit deny among the matching statements overrides any allow.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from iam_authz.evaluation.decision import Decision, DenialReason
from iam_authz.policies.matcher import matches_any, matches_condition

if TYPE_CHECKING:
    from iam_authz.engine.registry import Identity

logger = logging.getLogger(__name__)


def evaluate_trust(
    principal: str,
    identity: Identity,
    context: Mapping[str, str] | None = None,
) -> Decision:
    """Evaluate the trust policy of *identity* for *principal*.

    Returns an allowing :class:`Decision` naming the first matching allow
    statement, or a ``TrustDenied`` decision naming the first matching deny
    statement (``None`` for a default deny).
    """
    trust_policy = identity.trust_policy
    if trust_policy is None:
        logger.debug("Identity %s has no trust policy; %s denied", identity.identity_id, principal)
        return Decision.deny(DenialReason.TRUST_DENIED)

    effective_context: Mapping[str, str] = context or {}
    first_allow: str | None = None

    for index, statement in enumerate(trust_policy.statements):
        if not matches_any(statement.principals, principal):
            continue
        if not matches_any(statement.actions, identity.assume_action):
            continue
        if not matches_condition(statement.condition, effective_context):
            continue
        statement_id = trust_policy.statement_id(index)
        if statement.is_deny:
            logger.debug(
                "Trust explicitly denied: principal=%s identity=%s statement=%s",
                principal,
                identity.identity_id,
                statement_id,
            )
            return Decision.deny(DenialReason.TRUST_DENIED, statement_id)
        if first_allow is None:
            first_allow = statement_id

    if first_allow is None:
        return Decision.deny(DenialReason.TRUST_DENIED)
    return Decision.allow(first_allow)


def can_assume(
    principal: str,
    identity: Identity,
    context: Mapping[str, str] | None = None,
) -> bool:
    """Return True if *principal* may assume *identity*."""
    return evaluate_trust(principal, identity, context).allowed
