"""Permission evaluator.

Decides whether a set of identity-based or resource-based policies permit
an action on a resource under a given context.

The combination rule is default deny with explicit-deny precedence:

1. Every statement, across every policy, whose action, resource and
   condition all match the request is considered.  Principals are not
   consulted here.
2. Any matching DENY wins immediately (``ExplicitDeny``).
3. Otherwise the first matching ALLOW permits the request.
4. Otherwise the request is denied (``NoMatchingAllow``).

The evaluator is a pure function of its inputs.

Example
-------
>>> from iam_authz.policies.document import Effect, Policy, Statement
>>> policy = Policy("logs", (Statement(Effect.ALLOW, actions=frozenset({"logs:*"}),
...                                    resources=frozenset({"*"})),))
>>> evaluate([policy], "logs:PutLogEvents", "/aws/lambda/x", {}).allowed
True
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence

from iam_authz.evaluation.decision import Decision, DenialReason
from iam_authz.policies.document import Policy, Statement
from iam_authz.policies.matcher import matches_any, matches_condition

logger = logging.getLogger(__name__)


def _iter_statements(policies: Sequence[Policy]) -> Iterator[tuple[str, Statement]]:
    for policy in policies:
        for index, statement in enumerate(policy.statements):
            yield policy.statement_id(index), statement


def statement_applies(
    statement: Statement,
    action: str,
    resource_id: str,
    context: Mapping[str, str],
) -> bool:
    """Return True if *statement* matches the action, resource and context."""
    return (
        matches_any(statement.actions, action)
        and matches_any(statement.resources, resource_id)
        and matches_condition(statement.condition, context)
    )


def evaluate(
    policies: Sequence[Policy],
    action: str,
    resource_id: str,
    context: Mapping[str, str] | None = None,
) -> Decision:
    """Evaluate *policies* against a single action on a single resource.

    Parameters
    ----------
    policies:
        Policies to combine.  Their order only affects which statement id
        is reported.
    action:
        ``service:Verb`` action being performed.
    resource_id:
        Identifier of the target resource.
    context:
        Runtime context for statement conditions.

    Returns
    -------
    Decision
        Never raises for a denial.
    """
    effective_context: Mapping[str, str] = context or {}
    first_allow: str | None = None

    for statement_id, statement in _iter_statements(policies):
        if not statement_applies(statement, action, resource_id, effective_context):
            continue
        if statement.is_deny:
            logger.debug(
                "Explicit deny: action=%s resource=%s statement=%s",
                action,
                resource_id,
                statement_id,
            )
            return Decision.deny(DenialReason.EXPLICIT_DENY, statement_id)
        if first_allow is None:
            first_allow = statement_id

    if first_allow is not None:
        logger.debug(
            "Allow: action=%s resource=%s statement=%s", action, resource_id, first_allow
        )
        return Decision.allow(first_allow)

    logger.debug("Default deny: action=%s resource=%s", action, resource_id)
    return Decision.deny(DenialReason.NO_MATCHING_ALLOW)


def combine(identity_decision: Decision, resource_decision: Decision | None) -> Decision:
    """AND an identity-side decision with an optional resource-side decision.

    Both sides default to deny independently.  An explicit deny on either
    side is fatal and is reported in preference to a default deny; when both
    sides deny explicitly the identity side is reported.
    """
    if resource_decision is None:
        return identity_decision
    for side in (identity_decision, resource_decision):
        if side.reason is DenialReason.EXPLICIT_DENY:
            return side
    if not identity_decision.allowed:
        return identity_decision
    if not resource_decision.allowed:
        return resource_decision
    return identity_decision
