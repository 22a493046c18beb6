"""Tests for the iam-authz command line interface."""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from iam_authz.cli.main import cli

_FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:hello-fn"
_POST_HELLO = "arn:aws:execute-api:us-east-1:123456789012:abc123/prod/POST/hello"


def _config(audit_path: Path, enabled: bool = True) -> dict[str, object]:
    return {
        "version": "1",
        "audit": {"enabled": enabled, "log_path": str(audit_path)},
        "identities": [
            {
                "id": "hello-fn",
                "trust_policy": {
                    "id": "hello-fn-trust",
                    "statements": [
                        {
                            "effect": "Allow",
                            "principals": ["gateway-service"],
                            "actions": ["sts:AssumeRole"],
                        }
                    ],
                },
                "permission_policies": [
                    {
                        "id": "hello-fn-logs",
                        "statements": [
                            {
                                "effect": "Allow",
                                "actions": ["logs:PutLogEvents"],
                                "resources": ["/aws/lambda/hello-fn/*"],
                            },
                            {
                                "effect": "Allow",
                                "actions": ["lambda:InvokeFunction"],
                                "resources": [_FUNCTION_ARN],
                            },
                        ],
                    }
                ],
            }
        ],
        "resources": [
            {
                "id": _FUNCTION_ARN,
                "policy": {
                    "id": "hello-fn-resource",
                    "statements": [
                        {
                            "effect": "Allow",
                            "actions": ["lambda:InvokeFunction"],
                            "resources": [_FUNCTION_ARN],
                            "condition": {"SourceArn": _POST_HELLO},
                        }
                    ],
                },
            }
        ],
    }


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "audit.jsonl"


@pytest.fixture()
def config_file(tmp_path: Path, audit_path: Path) -> str:
    path = tmp_path / "authz.yaml"
    path.write_text(yaml.safe_dump(_config(audit_path)), encoding="utf-8")
    return str(path)


def _check(runner: CliRunner, config_file: str, *extra: str) -> object:
    return runner.invoke(
        cli,
        [
            "check",
            "--principal", "gateway-service",
            "--identity", "hello-fn",
            "--config", config_file,
            *extra,
        ],
    )


class TestVersion:
    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "iam-authz" in result.output


class TestValidate:
    def test_valid_config(self, runner: CliRunner, config_file: str) -> None:
        result = runner.invoke(cli, ["validate", "--config", config_file])
        assert result.exit_code == 0
        assert "Valid" in result.output
        assert "hello-fn" in result.output

    def test_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["validate", "--config", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 2

    def test_invalid_policy(self, runner: CliRunner, tmp_path: Path, audit_path: Path) -> None:
        config = _config(audit_path)
        config["identities"][0]["trust_policy"]["statements"][0]["effect"] = "Maybe"  # type: ignore[index]
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(config), encoding="utf-8")
        result = runner.invoke(cli, ["validate", "--config", str(path)])
        assert result.exit_code == 2

    def test_bad_yaml(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("identities: [unclosed", encoding="utf-8")
        result = runner.invoke(cli, ["validate", "--config", str(path)])
        assert result.exit_code == 2


class TestCheck:
    def test_allowed(self, runner: CliRunner, config_file: str) -> None:
        result = _check(
            runner, config_file,
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        assert result.exit_code == 0
        assert "ALLOWED" in result.output
        assert "hello-fn-logs#0" in result.output

    def test_denied(self, runner: CliRunner, config_file: str) -> None:
        result = _check(
            runner, config_file,
            "--action", "s3:GetObject",
            "--resource", "arn:aws:s3:::bucket/key",
        )
        assert result.exit_code == 1
        assert "DENIED" in result.output
        assert "NoMatchingAllow" in result.output

    def test_context_satisfies_resource_condition(self, runner: CliRunner, config_file: str) -> None:
        result = _check(
            runner, config_file,
            "--action", "lambda:InvokeFunction",
            "--resource", _FUNCTION_ARN,
            "--context", f"SourceArn={_POST_HELLO}",
        )
        assert result.exit_code == 0

    def test_missing_context_denied(self, runner: CliRunner, config_file: str) -> None:
        result = _check(
            runner, config_file,
            "--action", "lambda:InvokeFunction",
            "--resource", _FUNCTION_ARN,
        )
        assert result.exit_code == 1

    def test_bad_context_pair(self, runner: CliRunner, config_file: str) -> None:
        result = _check(
            runner, config_file,
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
            "--context", "no-separator",
        )
        assert result.exit_code == 2

    @pytest.mark.parametrize(
        "content",
        ["version: '9'\n", "identities: [unclosed\n", "- not\n- a mapping\n"],
    )
    def test_broken_config_is_config_error(
        self, runner: CliRunner, tmp_path: Path, content: str
    ) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text(content, encoding="utf-8")
        result = _check(
            runner, str(path),
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)
        assert "Configuration error" in result.output

    def test_invalid_policy_is_config_error(
        self, runner: CliRunner, tmp_path: Path, audit_path: Path
    ) -> None:
        config = _config(audit_path)
        config["identities"][0]["permission_policies"][0]["statements"][0]["NotResource"] = "x"  # type: ignore[index]
        path = tmp_path / "negated.yaml"
        path.write_text(yaml.safe_dump(config), encoding="utf-8")
        result = _check(
            runner, str(path),
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        assert result.exit_code == 2
        assert "Invalid policy document" in result.output

    def test_unknown_identity(self, runner: CliRunner, config_file: str) -> None:
        result = runner.invoke(
            cli,
            [
                "check", "-p", "gateway-service", "-i", "ghost",
                "-a", "logs:PutLogEvents", "-r", "/aws/lambda/hello-fn/stream1",
                "-c", config_file,
            ],
        )
        assert result.exit_code == 2

    def test_decision_written_to_audit(
        self, runner: CliRunner, config_file: str, audit_path: Path
    ) -> None:
        _check(
            runner, config_file,
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        assert audit_path.exists()
        assert "authorization_decision" in audit_path.read_text(encoding="utf-8")

    def test_audit_disabled(self, runner: CliRunner, tmp_path: Path, audit_path: Path) -> None:
        path = tmp_path / "quiet.yaml"
        path.write_text(yaml.safe_dump(_config(audit_path, enabled=False)), encoding="utf-8")
        _check(
            runner, str(path),
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        assert not audit_path.exists()


class TestAuditShow:
    def test_no_entries(self, runner: CliRunner, config_file: str) -> None:
        result = runner.invoke(cli, ["audit", "show", "--config", config_file])
        assert result.exit_code == 0
        assert "No audit entries" in result.output

    def test_shows_recent_decisions(self, runner: CliRunner, config_file: str) -> None:
        _check(
            runner, config_file,
            "--action", "s3:GetObject",
            "--resource", "arn:aws:s3:::bucket/key",
        )
        result = runner.invoke(cli, ["audit", "show", "--last", "5", "--config", config_file])
        assert result.exit_code == 0
        assert "Matching decisions" in result.output

    def test_denied_filter(self, runner: CliRunner, config_file: str) -> None:
        _check(
            runner, config_file,
            "--action", "logs:PutLogEvents",
            "--resource", "/aws/lambda/hello-fn/stream1",
        )
        result = runner.invoke(cli, ["audit", "show", "--denied", "--config", config_file])
        assert result.exit_code == 0
        assert "No audit entries" in result.output

    def test_last_must_be_positive(self, runner: CliRunner, config_file: str) -> None:
        result = runner.invoke(cli, ["audit", "show", "--last", "0", "--config", config_file])
        assert result.exit_code == 2
