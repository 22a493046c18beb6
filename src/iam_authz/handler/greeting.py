"""Greeting request handler gated by an authorization decision.

Handles API-gateway proxy events for ``POST /hello``.  Before touching the
payload it asks the :class:`DecisionEngine` whether the gateway principal
may invoke the function from the event's source ARN.

Responses follow the proxy-integration shape::

    {"statusCode": 200, "headers": {...}, "body": "{\\"message\\": \\"Hello Ada\\"}"}

Example
-------
>>> handler = GreetingHandler(engine, identity_id="hello-fn-invoker",
...                           resource_id="arn:aws:lambda:us-east-1:123456789012:function:hello-fn")
>>> handler.handle({"body": '{"name": "Ada"}',
...                 "requestContext": {"principal": "apigateway.amazonaws.com",
...                                    "sourceArn": "arn:aws:execute-api:..."}})["statusCode"]
200
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from iam_authz.engine.decision_engine import DecisionEngine
from iam_authz.engine.registry import UnknownIdentity

logger = logging.getLogger(__name__)

DEFAULT_PRINCIPAL: str = "apigateway.amazonaws.com"
INVOKE_ACTION: str = "lambda:InvokeFunction"

_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _response(status_code: int, body: dict[str, str]) -> dict[str, object]:
    return {
        "statusCode": status_code,
        "headers": dict(_HEADERS),
        "body": json.dumps(body),
    }


def error_response(status_code: int, message: str) -> dict[str, object]:
    """Return an error response with an ``{"error": message}`` body."""
    return _response(status_code, {"error": message})


class GreetingHandler:
    """Returns ``Hello <name>`` for authorized requests.

    Parameters
    ----------
    engine:
        Engine consulted before any payload processing.
    identity_id:
        Identity the gateway assumes to invoke the function.
    resource_id:
        Id of the function resource being invoked.
    action:
        Action checked against the policies.  Defaults to
        ``lambda:InvokeFunction``.
    """

    def __init__(
        self,
        engine: DecisionEngine,
        identity_id: str,
        resource_id: str,
        action: str = INVOKE_ACTION,
    ) -> None:
        self._engine = engine
        self._identity_id = identity_id
        self._resource_id = resource_id
        self._action = action

    def handle(self, event: Mapping[str, object]) -> dict[str, object]:
        """Authorize and process a single proxy event."""
        request_context = event.get("requestContext") or {}
        if not isinstance(request_context, Mapping):
            request_context = {}
        principal = str(request_context.get("principal", DEFAULT_PRINCIPAL))
        auth_context: dict[str, str] = {}
        source_arn = request_context.get("sourceArn")
        if source_arn:
            auth_context["SourceArn"] = str(source_arn)

        try:
            decision = self._engine.check(
                principal, self._identity_id, self._action, self._resource_id, auth_context
            )
        except UnknownIdentity:
            logger.error("Handler identity %r is not configured", self._identity_id)
            return error_response(500, "Internal server error")

        if not decision.allowed:
            logger.info(
                "Invocation denied for %s: %s",
                principal,
                decision.reason.value if decision.reason else "unknown",
            )
            return error_response(403, "Forbidden")

        body = event.get("body")
        if not body:
            return error_response(400, "Request body is required")

        try:
            payload = json.loads(str(body))
        except json.JSONDecodeError as exc:
            logger.info("Error parsing JSON: %s", exc)
            return error_response(400, "Invalid JSON format")

        name = payload.get("name") if isinstance(payload, dict) else None
        if not isinstance(name, str) or not name:
            return error_response(400, "Name parameter is required")

        logger.info("Successfully processed request for name: %s", name)
        return _response(200, {"message": f"Hello {name}"})
