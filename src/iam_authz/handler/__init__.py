"""Request handlers that consume authorization decisions."""
from __future__ import annotations

from iam_authz.handler.greeting import GreetingHandler, error_response

__all__ = ["GreetingHandler", "error_response"]
