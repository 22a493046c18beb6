#!/usr/bin/env python3
"""Example: gateway invocation check and gated greeting handler.

Loads ``hello_api.yaml``, authorizes a few requests directly, then runs
the greeting handler with matching and mismatching source ARNs.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install iam-authz
"""
from __future__ import annotations

import json
from pathlib import Path

import iam_authz as authz

_CONFIG = Path(__file__).parent / "hello_api.yaml"
_FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:hello-fn"
_POST_HELLO = "arn:aws:execute-api:us-east-1:123456789012:abc123/prod/POST/hello"
_GET_HELLO = "arn:aws:execute-api:us-east-1:123456789012:abc123/prod/GET/hello"


def main() -> None:
    print(f"iam-authz version: {authz.__version__}")

    engine = authz.DecisionEngine()
    registry = engine.load_file(_CONFIG)
    print(f"Loaded registry: {registry.summary()}")

    # Step 1: the function writing its own logs
    decision = engine.check(
        "lambda.amazonaws.com",
        "hello-fn",
        "logs:PutLogEvents",
        "arn:aws:logs:us-east-1:123456789012:/aws/lambda/hello-fn/2024/stream",
    )
    print(f"Log write: {decision.to_dict()}")

    # Step 2: the same identity reading S3 falls through to default deny
    decision = engine.check("lambda.amazonaws.com", "hello-fn", "s3:GetObject", "arn:aws:s3:::bucket/key")
    print(f"S3 read:   {decision.to_dict()}")

    # Step 3: gateway invocations through the handler
    handler = authz.GreetingHandler(engine, identity_id="hello-fn-invoker", resource_id=_FUNCTION_ARN)
    for source_arn in (_POST_HELLO, _GET_HELLO):
        event = {
            "body": json.dumps({"name": "Ada"}),
            "requestContext": {"principal": "apigateway.amazonaws.com", "sourceArn": source_arn},
        }
        response = handler.handle(event)
        print(f"{source_arn.rsplit('/', 2)[-2]:>4} -> {response['statusCode']} {response['body']}")


if __name__ == "__main__":
    main()
