"""Authorization request and decision value types.

Both types are immutable.  A denial is an ordinary :class:`Decision`
value with ``allowed=False`` and a :class:`DenialReason`; it is never
raised as an exception.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType


class DenialReason(str, Enum):
    """Why a request was denied."""

    NO_MATCHING_ALLOW = "NoMatchingAllow"
    EXPLICIT_DENY = "ExplicitDeny"
    TRUST_DENIED = "TrustDenied"


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check.

    Attributes
    ----------
    allowed:
        Whether the request is permitted.
    reason:
        The denial reason, or ``None`` when ``allowed`` is ``True``.
    matched_statement_id:
        Id of the statement that determined the outcome (``<policy>#<sid>``),
        or ``None`` for a default deny.
    """

    allowed: bool
    reason: DenialReason | None = None
    matched_statement_id: str | None = None

    def __post_init__(self) -> None:
        if self.allowed and self.reason is not None:
            raise ValueError("an allowing decision cannot carry a denial reason")
        if not self.allowed and self.reason is None:
            raise ValueError("a denying decision must carry a denial reason")

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls, matched_statement_id: str | None) -> Decision:
        return cls(allowed=True, matched_statement_id=matched_statement_id)

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        matched_statement_id: str | None = None,
    ) -> Decision:
        return cls(allowed=False, reason=reason, matched_statement_id=matched_statement_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason is not None else None,
            "matched_statement_id": self.matched_statement_id,
        }


@dataclass(frozen=True)
class AuthorizationRequest:
    """A single call to be authorized.

    Attributes
    ----------
    principal:
        The caller asking to act as ``target_identity_id``.
    target_identity_id:
        Id of the identity the caller wants to assume.
    action:
        ``service:Verb`` action being performed.
    resource_id:
        Identifier of the target resource.
    context:
        Runtime context values consulted by statement conditions.
    """

    principal: str
    target_identity_id: str
    action: str
    resource_id: str
    context: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "context",
            MappingProxyType({str(k): str(v) for k, v in dict(self.context).items()}),
        )

    def cache_key(self) -> tuple[object, ...]:
        """Return a hashable key over the full request tuple.

        Callers that cache decisions must key on this value and must also
        invalidate on every registry reload.
        """
        return (
            self.principal,
            self.target_identity_id,
            self.action,
            self.resource_id,
            frozenset(self.context.items()),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "principal": self.principal,
            "target_identity_id": self.target_identity_id,
            "action": self.action,
            "resource_id": self.resource_id,
            "context": dict(self.context),
        }


@dataclass(frozen=True)
class DecisionRecord:
    """Auditable pairing of a request with the decision it produced."""

    request: AuthorizationRequest
    decision: Decision
    registry_generation: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict[str, object]:
        """Flatten the record into a JSON-serialisable dict."""
        return {
            "event": "authorization_decision",
            "decided_at": self.timestamp.isoformat(),
            "registry_generation": self.registry_generation,
            **self.request.to_dict(),
            **self.decision.to_dict(),
        }
