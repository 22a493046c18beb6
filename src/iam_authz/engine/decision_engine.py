"""Decision engine: trust evaluation followed by permission evaluation.

The engine serves decisions from an immutable :class:`Registry` snapshot.
Reloading builds a new snapshot out-of-band and publishes it with a single
reference assignment, so every ``authorize`` call sees exactly one
snapshot from start to finish.  Only reloads are serialised; the read path
takes no lock.

Example
-------
>>> engine = DecisionEngine()
>>> registry = engine.reload(identities=[...], resources=[...])
>>> decision = engine.check(
...     "gateway-service", "hello-fn", "logs:PutLogEvents",
...     "/aws/lambda/hello-fn/stream1",
... )
>>> decision.allowed
True
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from pathlib import Path

from iam_authz.engine.config_loader import AuthzConfig, ConfigLoader
from iam_authz.engine.registry import (
    Identity,
    Registry,
    Resource,
    empty_registry,
    load_registry,
)
from iam_authz.evaluation.decision import (
    AuthorizationRequest,
    Decision,
    DecisionRecord,
)
from iam_authz.evaluation.permission import combine, evaluate
from iam_authz.evaluation.trust import evaluate_trust

logger = logging.getLogger(__name__)

DecisionSink = Callable[[DecisionRecord], None]


class RegistryState(str, Enum):
    """Lifecycle state of the engine's registry."""

    LOADED = "loaded"
    RELOADING = "reloading"


class DecisionEngine:
    """Authorizes requests against the currently loaded registry.

    Parameters
    ----------
    registry:
        Initial registry snapshot.  Defaults to an empty registry.
    decision_sink:
        Optional callable receiving a :class:`DecisionRecord` for every
        decision.  The engine never formats or transmits the record itself.
    config_loader:
        Optional :class:`ConfigLoader` override (for testing).
    """

    def __init__(
        self,
        registry: Registry | None = None,
        decision_sink: DecisionSink | None = None,
        config_loader: ConfigLoader | None = None,
    ) -> None:
        self._registry: Registry = registry or empty_registry()
        self._decision_sink = decision_sink
        self._config_loader = config_loader or ConfigLoader()
        self._reload_lock = threading.Lock()
        self._state = RegistryState.LOADED

    # ------------------------------------------------------------------
    # Registry lifecycle
    # ------------------------------------------------------------------

    def reload(
        self,
        identities: Sequence[Mapping[str, object] | Identity],
        resources: Sequence[Mapping[str, object] | Resource] = (),
    ) -> Registry:
        """Build a new registry and atomically publish it.

        Raises
        ------
        InvalidPolicyDocument
            If any definition is invalid.  The previous registry keeps
            serving decisions.
        """
        return self._swap(lambda: load_registry(identities, resources))

    def load_config(self, config: AuthzConfig) -> Registry:
        """Reload from an already-validated :class:`AuthzConfig`."""
        return self.reload(config.identities, config.resources)

    def load_file(self, config_path: str | Path) -> Registry:
        """Reload from a YAML or JSON configuration file."""
        config = self._config_loader.load(Path(config_path))
        registry = self.load_config(config)
        logger.info("Loaded authorization config from %s", config_path)
        return registry

    def _swap(self, build: Callable[[], Registry]) -> Registry:
        with self._reload_lock:
            self._state = RegistryState.RELOADING
            try:
                registry = build()
                self._registry = registry
            except Exception:
                logger.warning(
                    "Registry reload failed; generation %d keeps serving",
                    self._registry.generation,
                )
                raise
            finally:
                self._state = RegistryState.LOADED
        return registry

    @property
    def registry(self) -> Registry:
        """The currently published registry snapshot."""
        return self._registry

    @property
    def state(self) -> RegistryState:
        return self._state

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(self, request: AuthorizationRequest) -> Decision:
        """Decide whether *request* is allowed.

        Raises
        ------
        UnknownIdentity
            If ``request.target_identity_id`` is not registered.  This is a
            configuration error, not a denial.
        """
        registry = self._registry
        decision = self._decide(registry, request)
        logger.debug(
            "Decision principal=%s identity=%s action=%s resource=%s allowed=%s reason=%s",
            request.principal,
            request.target_identity_id,
            request.action,
            request.resource_id,
            decision.allowed,
            decision.reason.value if decision.reason else None,
        )
        self._emit(DecisionRecord(request, decision, registry.generation))
        return decision

    def check(
        self,
        principal: str,
        target_identity_id: str,
        action: str,
        resource_id: str,
        context: Mapping[str, str] | None = None,
    ) -> Decision:
        """Flat-argument form of :meth:`authorize`."""
        request = AuthorizationRequest(
            principal=principal,
            target_identity_id=target_identity_id,
            action=action,
            resource_id=resource_id,
            context=dict(context or {}),
        )
        return self.authorize(request)

    def _decide(self, registry: Registry, request: AuthorizationRequest) -> Decision:
        try:
            identity = registry.identity(request.target_identity_id)
        except LookupError:
            logger.warning(
                "Authorization requested for unknown identity %r", request.target_identity_id
            )
            raise

        trust = evaluate_trust(request.principal, identity, request.context)
        if not trust.allowed:
            return trust

        identity_decision = evaluate(
            identity.permission_policies,
            request.action,
            request.resource_id,
            request.context,
        )

        resource = registry.resource(request.resource_id)
        resource_decision: Decision | None = None
        if resource is not None and resource.policy is not None:
            resource_decision = evaluate(
                (resource.policy,),
                request.action,
                request.resource_id,
                request.context,
            )
        return combine(identity_decision, resource_decision)

    def _emit(self, record: DecisionRecord) -> None:
        if self._decision_sink is None:
            return
        try:
            self._decision_sink(record)
        except Exception:
            logger.exception("Decision sink failed for identity %s", record.request.target_identity_id)
