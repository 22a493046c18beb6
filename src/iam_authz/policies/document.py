"""Policy document model.

Typed, immutable representation of policy statements and policies.  The
model carries no evaluation behaviour; it only validates its own structure
at construction so that a malformed document can never reach the
evaluators.

Example
-------
>>> statement = Statement(
...     effect=Effect.ALLOW,
...     actions=frozenset({"logs:PutLogEvents"}),
...     resources=frozenset({"/aws/lambda/hello-fn/*"}),
... )
>>> policy = Policy(policy_id="hello-fn-logs", statements=(statement,))
>>> policy.statement_id(0)
'hello-fn-logs#0'
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

WILDCARD: str = "*"


class InvalidPolicyDocument(ValueError):
    """Raised when a policy document is structurally invalid.

    Attributes
    ----------
    reason:
        The bare message, without field and source prefixes.
    field:
        Name of the offending field (e.g. ``"effect"``, ``"condition"``).
    source:
        Identifier of the document being built (policy id or file path),
        if known.
    """

    def __init__(self, message: str, field: str, source: str | None = None) -> None:
        self.reason = message
        self.field = field
        self.source = source
        prefix = f"[{source}] " if source else ""
        super().__init__(f"{prefix}{field}: {message}")


class Effect(str, Enum):
    """The two possible outcomes a statement can declare."""

    ALLOW = "Allow"
    DENY = "Deny"

    @classmethod
    def parse(cls, value: object) -> Effect:
        """Return the effect named by *value* (case-insensitive)."""
        if isinstance(value, Effect):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise InvalidPolicyDocument(
            f"unrecognized effect {value!r}; expected 'Allow' or 'Deny'", "effect"
        )


@dataclass(frozen=True, eq=False)
class Condition:
    """Exact-match restriction on runtime context values.

    Attributes
    ----------
    requirements:
        Read-only mapping of context key to the frozen set of accepted
        literal values for that key.
    """

    requirements: Mapping[str, frozenset[str]]

    def __post_init__(self) -> None:
        if not self.requirements:
            raise InvalidPolicyDocument(
                "a condition must name at least one context key", "condition"
            )
        frozen: dict[str, frozenset[str]] = {}
        for key, values in self.requirements.items():
            if not isinstance(key, str) or not key:
                raise InvalidPolicyDocument(
                    f"condition keys must be non-empty strings; got {key!r}", "condition"
                )
            accepted = frozenset(values)
            if not accepted:
                raise InvalidPolicyDocument(
                    f"condition key {key!r} has zero accepted values", "condition"
                )
            frozen[key] = accepted
        object.__setattr__(self, "requirements", MappingProxyType(frozen))

    @classmethod
    def of(cls, requirements: Mapping[str, str | Iterable[str]]) -> Condition:
        """Build a condition, accepting a bare string as a single value."""
        normalised: dict[str, frozenset[str]] = {}
        for key, values in requirements.items():
            if isinstance(values, str):
                normalised[key] = frozenset({values})
            else:
                normalised[key] = frozenset(str(v) for v in values)
        return cls(requirements=normalised)

    def __hash__(self) -> int:
        return hash(frozenset(self.requirements.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Condition):
            return NotImplemented
        return dict(self.requirements) == dict(other.requirements)


def _validate_patterns(name: str, patterns: frozenset[str]) -> None:
    for pattern in patterns:
        if not isinstance(pattern, str) or not pattern:
            raise InvalidPolicyDocument(
                f"{name} entries must be non-empty strings; got {pattern!r}", name
            )


@dataclass(frozen=True)
class Statement:
    """A single rule within a policy.

    An empty ``principals``, ``actions`` or ``resources`` set matches
    nothing.  A universal match needs an explicit ``"*"`` entry.

    Attributes
    ----------
    effect:
        :attr:`Effect.ALLOW` or :attr:`Effect.DENY`.
    principals:
        Principal patterns.  Only consulted by trust evaluation.
    actions:
        Action patterns (``service:Verb``).
    resources:
        Resource identifier patterns.
    condition:
        Optional exact-match context restriction.
    sid:
        Optional statement identifier used when reporting decisions.
    """

    effect: Effect
    principals: frozenset[str] = field(default_factory=frozenset)
    actions: frozenset[str] = field(default_factory=frozenset)
    resources: frozenset[str] = field(default_factory=frozenset)
    condition: Condition | None = None
    sid: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "effect", Effect.parse(self.effect))
        for name in ("principals", "actions", "resources"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = frozenset({value})
            frozen = frozenset(value)
            _validate_patterns(name, frozen)
            object.__setattr__(self, name, frozen)
        if self.condition is not None and not isinstance(self.condition, Condition):
            raise InvalidPolicyDocument(
                f"expected a Condition; got {type(self.condition).__name__}", "condition"
            )

    @property
    def is_allow(self) -> bool:
        return self.effect is Effect.ALLOW

    @property
    def is_deny(self) -> bool:
        return self.effect is Effect.DENY


@dataclass(frozen=True)
class Policy:
    """An identified, ordered, non-empty collection of statements.

    Whether a policy acts as a trust policy or a permission policy is
    decided by where it is attached, not by its type.
    """

    policy_id: str
    statements: tuple[Statement, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.policy_id, str) or not self.policy_id:
            raise InvalidPolicyDocument("policy id must be a non-empty string", "id")
        statements = tuple(self.statements)
        if not statements:
            raise InvalidPolicyDocument(
                "a policy must contain at least one statement",
                "statements",
                source=self.policy_id,
            )
        for statement in statements:
            if not isinstance(statement, Statement):
                raise InvalidPolicyDocument(
                    f"expected Statement entries; got {type(statement).__name__}",
                    "statements",
                    source=self.policy_id,
                )
        object.__setattr__(self, "statements", statements)

    def statement_id(self, index: int) -> str:
        """Return the reportable id of the statement at *index*.

        ``<policy id>#<sid>`` when the statement has a sid, otherwise
        ``<policy id>#<index>``.
        """
        statement = self.statements[index]
        suffix = statement.sid if statement.sid else str(index)
        return f"{self.policy_id}#{suffix}"

    def __len__(self) -> int:
        return len(self.statements)
