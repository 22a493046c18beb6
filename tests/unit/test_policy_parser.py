"""Unit tests for policies/parser.py — native and IAM JSON document shapes."""
from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from iam_authz.policies.document import Condition, Effect, InvalidPolicyDocument, Policy
from iam_authz.policies.parser import PolicyParser

_SOURCE_ARN = "arn:aws:execute-api:us-east-1:123456789012:abc123/prod/POST/hello"


@pytest.fixture()
def parser() -> PolicyParser:
    return PolicyParser()


@pytest.fixture()
def iam_document() -> dict[str, object]:
    return {
        "Id": "hello-fn-invoke",
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "AllowApiGateway",
                "Effect": "Allow",
                "Principal": {"Service": "apigateway.amazonaws.com"},
                "Action": "lambda:InvokeFunction",
                "Resource": "*",
                "Condition": {"ArnEquals": {"SourceArn": _SOURCE_ARN}},
            }
        ],
    }


# ---------------------------------------------------------------------------
# Native shape
# ---------------------------------------------------------------------------


class TestNativeShape:
    def test_basic_policy(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {
                "id": "hello-fn-logs",
                "statements": [
                    {
                        "sid": "WriteLogs",
                        "effect": "allow",
                        "actions": ["logs:CreateLogStream", "logs:PutLogEvents"],
                        "resources": ["/aws/lambda/hello-fn/*"],
                    }
                ],
            }
        )
        assert isinstance(policy, Policy)
        assert policy.policy_id == "hello-fn-logs"
        statement = policy.statements[0]
        assert statement.effect is Effect.ALLOW
        assert statement.sid == "WriteLogs"
        assert statement.actions == frozenset({"logs:CreateLogStream", "logs:PutLogEvents"})

    def test_scalar_fields_accepted(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {"id": "p", "statements": [{"effect": "Deny", "action": "s3:*", "resource": "*"}]}
        )
        assert policy.statements[0].actions == frozenset({"s3:*"})
        assert policy.statements[0].resources == frozenset({"*"})

    def test_flat_condition(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {
                "id": "p",
                "statements": [
                    {
                        "effect": "Allow",
                        "actions": ["lambda:InvokeFunction"],
                        "resources": ["*"],
                        "condition": {"SourceArn": _SOURCE_ARN},
                    }
                ],
            }
        )
        assert policy.statements[0].condition == Condition.of({"SourceArn": _SOURCE_ARN})

    def test_fallback_policy_id(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {"statements": [{"effect": "Allow", "actions": ["a:b"]}]}, policy_id="fallback"
        )
        assert policy.policy_id == "fallback"

    def test_missing_fields_default_to_empty(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy({"id": "p", "statements": [{"effect": "Allow"}]})
        statement = policy.statements[0]
        assert statement.principals == frozenset()
        assert statement.actions == frozenset()
        assert statement.resources == frozenset()


# ---------------------------------------------------------------------------
# IAM JSON shape
# ---------------------------------------------------------------------------


class TestIamShape:
    def test_iam_document(self, parser: PolicyParser, iam_document: dict[str, object]) -> None:
        policy = parser.parse_policy(iam_document)
        statement = policy.statements[0]
        assert policy.policy_id == "hello-fn-invoke"
        assert statement.sid == "AllowApiGateway"
        assert statement.principals == frozenset({"apigateway.amazonaws.com"})
        assert statement.actions == frozenset({"lambda:InvokeFunction"})
        assert statement.condition == Condition.of({"SourceArn": _SOURCE_ARN})
        assert policy.statement_id(0) == "hello-fn-invoke#AllowApiGateway"

    def test_single_statement_mapping(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {"Id": "p", "Statement": {"Effect": "Allow", "Action": "a:b", "Resource": "*"}}
        )
        assert len(policy) == 1

    def test_wildcard_principal(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {"Id": "p", "Statement": [{"Effect": "Allow", "Principal": "*", "Action": "sts:AssumeRole"}]}
        )
        assert policy.statements[0].principals == frozenset({"*"})

    def test_aws_principal_list(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {
                "Id": "p",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": ["arn:a", "arn:b"], "Service": "svc"},
                        "Action": "sts:AssumeRole",
                    }
                ],
            }
        )
        assert policy.statements[0].principals == frozenset({"arn:a", "arn:b", "svc"})

    def test_unknown_principal_kind_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy(
                {"Id": "p", "Statement": [{"Effect": "Allow", "Principal": {"Robot": "x"}}]}
            )
        assert excinfo.value.field == "principals"

    def test_string_equals_operator(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {
                "Id": "p",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Action": "a:b",
                        "Resource": "*",
                        "Condition": {"StringEquals": {"SourceAccount": ["111", "222"]}},
                    }
                ],
            }
        )
        assert policy.statements[0].condition == Condition.of({"SourceAccount": ["111", "222"]})

    @pytest.mark.parametrize("operator", ["StringLike", "ArnLike", "IpAddress"])
    def test_non_exact_operator_rejected(self, parser: PolicyParser, operator: str) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy(
                {
                    "Id": "p",
                    "Statement": [
                        {
                            "Effect": "Allow",
                            "Action": "a:b",
                            "Resource": "*",
                            "Condition": {operator: {"SourceArn": "x"}},
                        }
                    ],
                }
            )
        assert excinfo.value.field == "condition"


# ---------------------------------------------------------------------------
# Validation failures
# ---------------------------------------------------------------------------


class TestValidation:
    def test_empty_statements_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy({"id": "p", "statements": []})
        assert excinfo.value.field == "statements"

    def test_missing_statements_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument, match="statements"):
            parser.parse_policy({"id": "p"})

    def test_missing_id_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy({"statements": [{"effect": "Allow"}]})
        assert excinfo.value.field == "id"

    def test_unknown_effect_reports_statement_index(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy(
                {"id": "p", "statements": [{"effect": "Allow"}, {"effect": "Permit"}]}
            )
        assert excinfo.value.field == "effect"
        assert excinfo.value.source == "p"
        assert "statement 1" in str(excinfo.value)

    def test_missing_effect_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy({"id": "p", "statements": [{"actions": ["a:b"]}]})
        assert excinfo.value.field == "effect"

    def test_empty_condition_values_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy(
                {"id": "p", "statements": [{"effect": "Allow", "condition": {"SourceArn": []}}]}
            )
        assert excinfo.value.field == "condition"

    def test_duplicate_condition_key_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument, match="more than once"):
            parser.parse_policy(
                {
                    "id": "p",
                    "statements": [
                        {
                            "effect": "Allow",
                            "condition": {
                                "ArnEquals": {"SourceArn": "a"},
                                "StringEquals": {"SourceArn": "b"},
                            },
                        }
                    ],
                }
            )

    def test_non_string_action_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument) as excinfo:
            parser.parse_policy({"id": "p", "statements": [{"effect": "Allow", "actions": [1]}]})
        assert excinfo.value.field == "actions"

    def test_non_mapping_policy_rejected(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument):
            parser.parse_policy(["not", "a", "mapping"])  # type: ignore[arg-type]

    def test_strict_rejects_unknown_keys(self) -> None:
        with pytest.raises(InvalidPolicyDocument, match="description"):
            PolicyParser(strict=True).parse_policy(
                {"id": "p", "statements": [{"effect": "Allow", "description": "a:b"}]}
            )

    @pytest.mark.parametrize("strict", [False, True])
    @pytest.mark.parametrize("key", ["NotAction", "NotResource", "NotPrincipal"])
    def test_negated_elements_rejected(self, key: str, strict: bool) -> None:
        guard = {
            "Id": "guard",
            "Statement": [
                {"Effect": "Allow", "Action": "s3:*", "Resource": "*"},
                {"Effect": "Deny", "Action": "s3:*", key: "arn:aws:s3:::safe/*"},
            ],
        }
        with pytest.raises(InvalidPolicyDocument, match=key) as excinfo:
            PolicyParser(strict=strict).parse_policy(guard)
        assert excinfo.value.field == "statement"
        assert excinfo.value.source == "guard"

    def test_lenient_ignores_unknown_keys(self, parser: PolicyParser) -> None:
        policy = parser.parse_policy(
            {"id": "p", "statements": [{"effect": "Allow", "description": "ignored"}]}
        )
        assert len(policy) == 1


# ---------------------------------------------------------------------------
# Text and file input
# ---------------------------------------------------------------------------


class TestTextAndFiles:
    def test_parse_string_yaml(self, parser: PolicyParser) -> None:
        text = textwrap.dedent(
            """\
            id: yaml-policy
            statements:
              - effect: Allow
                actions: [s3:GetObject]
                resources: ["arn:aws:s3:::bucket/*"]
            """
        )
        policy = parser.parse_string(text)
        assert policy.policy_id == "yaml-policy"

    def test_parse_string_malformed(self, parser: PolicyParser) -> None:
        with pytest.raises(InvalidPolicyDocument):
            parser.parse_string("id: [unclosed")

    def test_parse_json_file_uses_stem_as_id(
        self, parser: PolicyParser, tmp_path: Path
    ) -> None:
        path = tmp_path / "bucket-read.json"
        path.write_text(
            json.dumps({"Statement": [{"Effect": "Allow", "Action": "s3:GetObject", "Resource": "*"}]}),
            encoding="utf-8",
        )
        policy = parser.parse_file(path)
        assert policy.policy_id == "bucket-read"

    def test_parse_yaml_file(
        self, parser: PolicyParser, tmp_path: Path, iam_document: dict[str, object]
    ) -> None:
        path = tmp_path / "invoke.yaml"
        path.write_text(json.dumps(iam_document), encoding="utf-8")
        policy = parser.parse_file(path)
        assert policy.policy_id == "hello-fn-invoke"

    def test_parse_malformed_json_file(self, parser: PolicyParser, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidPolicyDocument):
            parser.parse_file(path)

    def test_missing_file(self, parser: PolicyParser, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parser.parse_file(tmp_path / "absent.yaml")
