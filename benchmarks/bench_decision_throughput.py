"""Benchmark: DecisionEngine.authorize() throughput — decisions per second.

Uses a registry with one identity carrying several permission policies and
a resource policy, so every call runs trust, identity-side and
resource-side evaluation.
"""
from __future__ import annotations

import json
import time
from pathlib import Path

from iam_authz.engine.decision_engine import DecisionEngine
from iam_authz.evaluation.decision import AuthorizationRequest

_ITERATIONS: int = 10_000
_FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:bench-fn"
_SOURCE_ARN = "arn:aws:execute-api:us-east-1:123456789012:api/prod/POST/bench"


def _make_engine() -> DecisionEngine:
    """Build an engine with a realistic registry for benchmarking."""
    filler_policies = [
        {
            "id": f"filler-{index}",
            "statements": [
                {
                    "effect": "Allow",
                    "actions": [f"svc{index}:Get*", f"svc{index}:List*"],
                    "resources": [f"arn:aws:svc{index}:*:*:thing/*"],
                }
            ],
        }
        for index in range(20)
    ]
    engine = DecisionEngine()
    engine.reload(
        identities=[
            {
                "id": "bench-invoker",
                "trust_policy": {
                    "id": "bench-trust",
                    "statements": [
                        {
                            "effect": "Allow",
                            "principals": ["apigateway.amazonaws.com"],
                            "actions": ["sts:AssumeRole"],
                        }
                    ],
                },
                "permission_policies": [
                    *filler_policies,
                    {
                        "id": "invoke",
                        "statements": [
                            {"effect": "Allow", "actions": ["lambda:Invoke*"], "resources": [_FUNCTION_ARN]}
                        ],
                    },
                ],
            }
        ],
        resources=[
            {
                "id": _FUNCTION_ARN,
                "policy": {
                    "id": "bench-resource",
                    "statements": [
                        {
                            "effect": "Allow",
                            "actions": ["lambda:InvokeFunction"],
                            "resources": ["*"],
                            "condition": {"SourceArn": _SOURCE_ARN},
                        }
                    ],
                },
            }
        ],
    )
    return engine


def bench_decision_throughput() -> dict[str, object]:
    """Benchmark DecisionEngine.authorize() throughput.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms.
    """
    engine = _make_engine()
    request = AuthorizationRequest(
        principal="apigateway.amazonaws.com",
        target_identity_id="bench-invoker",
        action="lambda:InvokeFunction",
        resource_id=_FUNCTION_ARN,
        context={"SourceArn": _SOURCE_ARN},
    )

    start = time.perf_counter()
    for _ in range(_ITERATIONS):
        engine.authorize(request)
    total = time.perf_counter() - start

    result: dict[str, object] = {
        "operation": "decision_throughput",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(total / _ITERATIONS * 1000, 4),
    }
    print(
        f"[bench_decision_throughput] {result['operation']}: "
        f"{result['ops_per_second']:,.0f} ops/sec  "
        f"avg {result['avg_latency_ms']:.4f} ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_decision_throughput()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "throughput_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
