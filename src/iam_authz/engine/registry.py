"""Identity and resource registry.

A :class:`Registry` is an immutable, indexed snapshot of every identity
and resource the engine knows about.  Reconfiguration builds a brand-new
registry; an existing one is never mutated.

Definition schema (one mapping per identity / resource)::

    identities:
      - id: hello-fn
        assume_action: sts:AssumeRole        # optional
        trust_policy:
          id: hello-fn-trust
          statements:
            - effect: Allow
              principals: [gateway-service]
              actions: [sts:AssumeRole]
        permission_policies:
          - id: hello-fn-logs
            statements:
              - effect: Allow
                actions: [logs:PutLogEvents]
                resources: [/aws/lambda/hello-fn/*]

    resources:
      - id: arn:aws:lambda:us-east-1:123456789012:function:hello-fn
        policy:
          id: hello-fn-invoke
          statements: [...]

Example
-------
>>> registry = load_registry(identities=[...], resources=[])
>>> registry.identity("hello-fn").identity_id
'hello-fn'
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from iam_authz.policies.document import WILDCARD, InvalidPolicyDocument, Policy
from iam_authz.policies.matcher import matches_action
from iam_authz.policies.parser import PolicyParser

logger = logging.getLogger(__name__)

DEFAULT_ASSUME_ACTION: str = "sts:AssumeRole"
_ASSUME_FAMILY_PREFIX: str = "sts:Assume"

_generation_counter = itertools.count(1)


class UnknownIdentity(LookupError):
    """Raised when a request names an identity absent from the registry.

    This is a configuration error, distinct from a denial.

    Attributes
    ----------
    identity_id:
        The identity id that could not be found.
    """

    def __init__(self, identity_id: str) -> None:
        self.identity_id = identity_id
        super().__init__(f"Unknown identity: {identity_id!r}")


@dataclass(frozen=True)
class Identity:
    """An assumable identity with its trust and permission policies."""

    identity_id: str
    trust_policy: Policy | None
    permission_policies: tuple[Policy, ...] = ()
    assume_action: str = DEFAULT_ASSUME_ACTION

    def __post_init__(self) -> None:
        object.__setattr__(self, "permission_policies", tuple(self.permission_policies))
        if self.trust_policy is None:
            return
        for index, statement in enumerate(self.trust_policy.statements):
            for action in statement.actions:
                if not _in_assume_family(action, self.assume_action):
                    raise InvalidPolicyDocument(
                        f"statement {index} action {action!r} is outside the assume "
                        f"action family of identity {self.identity_id!r}",
                        "trust_policy",
                        source=self.trust_policy.policy_id,
                    )


@dataclass(frozen=True)
class Resource:
    """A resource that may carry its own resource-based policy."""

    resource_id: str
    policy: Policy | None = None


def _in_assume_family(action: str, assume_action: str) -> bool:
    if action.startswith(_ASSUME_FAMILY_PREFIX):
        return True
    return WILDCARD in action and matches_action(action, assume_action)


@dataclass(frozen=True)
class Registry:
    """Immutable index of identities and resources.

    Attributes
    ----------
    identities:
        Read-only mapping of identity id to :class:`Identity`.
    resources:
        Read-only mapping of resource id to :class:`Resource`.
    generation:
        Monotonically increasing stamp; a newer registry has a larger value.
    """

    identities: Mapping[str, Identity]
    resources: Mapping[str, Resource]
    generation: int = 0

    def identity(self, identity_id: str) -> Identity:
        """Return the identity named *identity_id*.

        Raises
        ------
        UnknownIdentity
            If no such identity is registered.
        """
        try:
            return self.identities[identity_id]
        except KeyError:
            raise UnknownIdentity(identity_id) from None

    def resource(self, resource_id: str) -> Resource | None:
        """Return the resource named *resource_id*, or ``None``."""
        return self.resources.get(resource_id)

    def summary(self) -> dict[str, object]:
        """Return a plain dict summarising the registry contents."""
        return {
            "generation": self.generation,
            "identity_count": len(self.identities),
            "resource_count": len(self.resources),
            "identities": sorted(self.identities),
            "resources_with_policy": sorted(
                rid for rid, res in self.resources.items() if res.policy is not None
            ),
        }


def empty_registry() -> Registry:
    """Return a registry with no identities and no resources."""
    return Registry(identities=MappingProxyType({}), resources=MappingProxyType({}))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_registry(
    identities: Sequence[Mapping[str, object] | Identity],
    resources: Sequence[Mapping[str, object] | Resource] = (),
    parser: PolicyParser | None = None,
) -> Registry:
    """Validate and index identity and resource definitions.

    Parameters
    ----------
    identities:
        Identity definitions (mappings, or already-built :class:`Identity`).
    resources:
        Resource definitions (mappings, or already-built :class:`Resource`).
    parser:
        Optional :class:`PolicyParser` override.

    Raises
    ------
    InvalidPolicyDocument
        If any definition is malformed or an id is duplicated.
    """
    policy_parser = parser or PolicyParser()

    identity_index: dict[str, Identity] = {}
    for raw_identity in identities:
        identity = _build_identity(raw_identity, policy_parser)
        if identity.identity_id in identity_index:
            raise InvalidPolicyDocument(
                f"duplicate identity id {identity.identity_id!r}", "id"
            )
        identity_index[identity.identity_id] = identity

    resource_index: dict[str, Resource] = {}
    for raw_resource in resources:
        resource = _build_resource(raw_resource, policy_parser)
        if resource.resource_id in resource_index:
            raise InvalidPolicyDocument(
                f"duplicate resource id {resource.resource_id!r}", "id"
            )
        resource_index[resource.resource_id] = resource

    registry = Registry(
        identities=MappingProxyType(identity_index),
        resources=MappingProxyType(resource_index),
        generation=next(_generation_counter),
    )
    logger.info(
        "Built registry generation %d: %d identities, %d resources",
        registry.generation,
        len(identity_index),
        len(resource_index),
    )
    return registry


def _require_id(raw: Mapping[str, object], kind: str) -> str:
    value = raw.get("id")
    if not isinstance(value, str) or not value:
        raise InvalidPolicyDocument(f"{kind} definition needs a non-empty 'id'", "id")
    return value


def _build_identity(raw: Mapping[str, object] | Identity, parser: PolicyParser) -> Identity:
    if isinstance(raw, Identity):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidPolicyDocument(
            f"identity definition must be a mapping; got {type(raw).__name__}", "identity"
        )
    identity_id = _require_id(raw, "identity")

    raw_trust = raw.get("trust_policy")
    trust_policy = (
        parser.parse_policy(raw_trust, policy_id=f"{identity_id}-trust")  # type: ignore[arg-type]
        if raw_trust is not None
        else None
    )

    raw_policies = raw.get("permission_policies", [])
    if not isinstance(raw_policies, list):
        raise InvalidPolicyDocument(
            "'permission_policies' must be a list", "permission_policies", source=identity_id
        )
    permission_policies = tuple(
        parser.parse_policy(p, policy_id=f"{identity_id}-policy-{i}")  # type: ignore[arg-type]
        for i, p in enumerate(raw_policies)
    )

    assume_action = str(raw.get("assume_action", DEFAULT_ASSUME_ACTION))
    return Identity(
        identity_id=identity_id,
        trust_policy=trust_policy,
        permission_policies=permission_policies,
        assume_action=assume_action,
    )


def _build_resource(raw: Mapping[str, object] | Resource, parser: PolicyParser) -> Resource:
    if isinstance(raw, Resource):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidPolicyDocument(
            f"resource definition must be a mapping; got {type(raw).__name__}", "resource"
        )
    resource_id = _require_id(raw, "resource")
    raw_policy = raw.get("policy")
    policy = (
        parser.parse_policy(raw_policy, policy_id=f"{resource_id}-policy")  # type: ignore[arg-type]
        if raw_policy is not None
        else None
    )
    return Resource(resource_id=resource_id, policy=policy)
