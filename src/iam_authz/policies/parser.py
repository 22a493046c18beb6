"""Policy document parser.

Turns already-deserialised policy documents (dicts from YAML or JSON) into
:class:`~iam_authz.policies.document.Policy` objects.  Two shapes are
accepted.

Native shape::

    id: hello-fn-logs
    statements:
      - sid: AllowLogWrites
        effect: allow
        actions: [logs:CreateLogStream, logs:PutLogEvents]
        resources: ["arn:aws:logs:*:*:/aws/lambda/hello-fn/*"]
        condition:
          SourceArn: arn:aws:execute-api:us-east-1:123456789012:abc123/prod/POST/hello

IAM JSON shape::

    {
      "Id": "hello-fn-invoke",
      "Version": "2012-10-17",
      "Statement": [
        {
          "Sid": "AllowApiGateway",
          "Effect": "Allow",
          "Principal": {"Service": "apigateway.amazonaws.com"},
          "Action": "lambda:InvokeFunction",
          "Resource": "*",
          "Condition": {"ArnEquals": {"SourceArn": "arn:aws:execute-api:..."}}
        }
      ]
    }

Only exact-match condition operators are understood; anything else is
rejected rather than silently weakened.  ``NotAction``, ``NotResource``
and ``NotPrincipal`` are rejected in both lax and strict mode.

Example
-------
>>> parser = PolicyParser()
>>> policy = parser.parse_policy({"id": "p", "statements": [
...     {"effect": "Allow", "actions": "s3:GetObject", "resources": "*"}]})
>>> policy.statements[0].actions
frozenset({'s3:GetObject'})
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

import yaml

from iam_authz.policies.document import (
    WILDCARD,
    Condition,
    Effect,
    InvalidPolicyDocument,
    Policy,
    Statement,
)

logger = logging.getLogger(__name__)

_EXACT_CONDITION_OPERATORS: frozenset[str] = frozenset(
    {"StringEquals", "ArnEquals"}
)
_PRINCIPAL_KINDS: frozenset[str] = frozenset({"Service", "AWS", "Federated"})
_NEGATED_KEYS: frozenset[str] = frozenset({"NotAction", "NotResource", "NotPrincipal"})


class PolicyParser:
    """Parses policy dictionaries into immutable :class:`Policy` objects.

    Parameters
    ----------
    strict:
        When ``True``, unknown statement keys raise
        :class:`InvalidPolicyDocument`.  Default ``False`` (unknown keys are
        ignored with a debug log line).  Negated elements always raise.
    """

    _STATEMENT_KEYS: frozenset[str] = frozenset(
        {
            "sid", "effect", "principals", "principal", "actions", "action",
            "resources", "resource", "condition",
            "Sid", "Effect", "Principal", "Action", "Resource", "Condition",
        }
    )

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_policy(
        self,
        raw: Mapping[str, object],
        policy_id: str | None = None,
    ) -> Policy:
        """Parse a single policy document.

        Parameters
        ----------
        raw:
            Policy mapping in native or IAM JSON shape.
        policy_id:
            Fallback id used when the document carries neither ``id`` nor
            ``Id``.

        Raises
        ------
        InvalidPolicyDocument
            If the document is malformed.
        """
        if isinstance(raw, Policy):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidPolicyDocument(
                f"policy must be a mapping; got {type(raw).__name__}",
                "policy",
                source=policy_id,
            )

        resolved_id = str(raw.get("id", raw.get("Id", policy_id or "")))
        if not resolved_id:
            raise InvalidPolicyDocument("policy has no id", "id")

        raw_statements = raw.get("statements", raw.get("Statement"))
        if raw_statements is None:
            raise InvalidPolicyDocument(
                "policy must contain a 'statements' list", "statements", source=resolved_id
            )
        if isinstance(raw_statements, Mapping):
            raw_statements = [raw_statements]
        if not isinstance(raw_statements, list):
            raise InvalidPolicyDocument(
                "'statements' must be a list", "statements", source=resolved_id
            )

        statements: list[Statement] = []
        for index, raw_statement in enumerate(raw_statements):
            try:
                statements.append(self.parse_statement(raw_statement))
            except InvalidPolicyDocument as exc:
                raise InvalidPolicyDocument(
                    f"statement {index}: {exc.reason}", exc.field, source=resolved_id
                ) from exc

        return Policy(policy_id=resolved_id, statements=tuple(statements))

    def parse_statement(self, raw: Mapping[str, object]) -> Statement:
        """Parse a single statement mapping."""
        if not isinstance(raw, Mapping):
            raise InvalidPolicyDocument(
                f"statement must be a mapping; got {type(raw).__name__}", "statement"
            )

        negated = _NEGATED_KEYS.intersection(raw.keys())
        if negated:
            raise InvalidPolicyDocument(
                f"negated element {sorted(negated)} is not supported", "statement"
            )

        unknown = set(raw.keys()) - self._STATEMENT_KEYS
        if unknown:
            if self._strict:
                raise InvalidPolicyDocument(
                    f"unknown statement keys {sorted(unknown)}", "statement"
                )
            logger.debug("Ignoring unknown statement keys: %s", sorted(unknown))

        if "effect" not in raw and "Effect" not in raw:
            raise InvalidPolicyDocument("statement has no effect", "effect")
        effect = Effect.parse(raw.get("effect", raw.get("Effect")))

        sid_raw = raw.get("sid", raw.get("Sid"))
        sid = str(sid_raw) if sid_raw not in (None, "") else None

        principals = _parse_principals(
            raw.get("principals", raw.get("principal", raw.get("Principal")))
        )
        actions = _as_string_set(
            "actions", raw.get("actions", raw.get("action", raw.get("Action")))
        )
        resources = _as_string_set(
            "resources", raw.get("resources", raw.get("resource", raw.get("Resource")))
        )

        raw_condition = raw.get("condition", raw.get("Condition"))
        condition = _parse_condition(raw_condition) if raw_condition is not None else None

        return Statement(
            effect=effect,
            principals=principals,
            actions=actions,
            resources=resources,
            condition=condition,
            sid=sid,
        )

    def parse_string(self, content: str, policy_id: str | None = None) -> Policy:
        """Parse a policy from YAML or JSON text."""
        try:
            raw = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise InvalidPolicyDocument(
                f"failed to parse policy text: {exc}", "policy", source=policy_id
            ) from exc
        return self.parse_policy(raw, policy_id=policy_id)

    def parse_file(self, path: str | Path) -> Policy:
        """Parse a policy file; the file stem is the fallback policy id."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Policy document not found: {path}")
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as exc:
                raise InvalidPolicyDocument(
                    f"failed to parse JSON: {exc}", "policy", source=str(path)
                ) from exc
            return self.parse_policy(raw, policy_id=path.stem)
        return self.parse_string(text, policy_id=path.stem)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _as_string_set(name: str, value: object) -> frozenset[str]:
    """Normalise a scalar-or-list field to a frozenset of strings."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, (list, tuple, set, frozenset)):
        result: set[str] = set()
        for item in value:
            if not isinstance(item, str):
                raise InvalidPolicyDocument(
                    f"entries must be strings; got {item!r}", name
                )
            result.add(item)
        return frozenset(result)
    raise InvalidPolicyDocument(
        f"expected a string or a list of strings; got {type(value).__name__}", name
    )


def _parse_principals(value: object) -> frozenset[str]:
    """Accept ``"*"``, a list, or an IAM ``{"Service": ...}`` mapping."""
    if isinstance(value, Mapping):
        result: set[str] = set()
        for kind, entries in value.items():
            if kind not in _PRINCIPAL_KINDS:
                raise InvalidPolicyDocument(
                    f"unknown principal kind {kind!r}", "principals"
                )
            result |= _as_string_set("principals", entries)
        return frozenset(result)
    return _as_string_set("principals", value)


def _parse_condition(value: object) -> Condition:
    """Parse a flat or operator-nested condition block.

    ``{"SourceArn": "arn:..."}`` and
    ``{"ArnEquals": {"SourceArn": "arn:..."}}`` produce the same condition.
    """
    if not isinstance(value, Mapping):
        raise InvalidPolicyDocument(
            f"condition must be a mapping; got {type(value).__name__}", "condition"
        )

    requirements: dict[str, frozenset[str]] = {}
    for key, entry in value.items():
        if isinstance(entry, Mapping):
            if key not in _EXACT_CONDITION_OPERATORS:
                raise InvalidPolicyDocument(
                    f"unsupported condition operator {key!r}; "
                    f"supported: {sorted(_EXACT_CONDITION_OPERATORS)}",
                    "condition",
                )
            for context_key, accepted in entry.items():
                _merge_requirement(requirements, str(context_key), accepted)
        else:
            _merge_requirement(requirements, str(key), entry)

    return Condition(requirements=requirements)


def _merge_requirement(
    requirements: dict[str, frozenset[str]],
    key: str,
    accepted: object,
) -> None:
    values = _as_string_set("condition", accepted)
    for candidate in values:
        if WILDCARD in candidate:
            logger.debug(
                "Condition value %r for %s contains '*', which is matched literally",
                candidate,
                key,
            )
    if key in requirements:
        raise InvalidPolicyDocument(
            f"condition key {key!r} is declared more than once", "condition"
        )
    if not values:
        raise InvalidPolicyDocument(
            f"condition key {key!r} has zero accepted values", "condition"
        )
    requirements[key] = values
