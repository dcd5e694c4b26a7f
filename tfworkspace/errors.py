"""Errors raised when a Terraform CLI operation fails, built from its JSON logs."""

from __future__ import annotations

import json
from dataclasses import dataclass

_LEVEL_ERROR = "error"


@dataclass(frozen=True)
class TerraformLog:
    """The relevant fields of one Terraform CLI JSON log line."""

    level: str = ""
    message: str = ""
    severity: str = ""
    summary: str = ""
    detail: str = ""

    def describe(self) -> str:
        """Return the most informative text for this log line."""
        if self.severity == _LEVEL_ERROR and self.summary:
            return f"{self.summary}: {self.detail}"
        return self.message


def _string_field(record: dict, key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


def _parse_line(line: str) -> TerraformLog:
    record = json.loads(line)
    if record is None:
        return TerraformLog()
    if not isinstance(record, dict):
        raise ValueError(f"log line is not a JSON object: {line}")
    diagnostic = record.get("diagnostic")
    if diagnostic is None:
        diagnostic = {}
    if not isinstance(diagnostic, dict):
        raise ValueError(f"diagnostic is not a JSON object: {line}")
    return TerraformLog(
        level=_string_field(record, "@level"),
        message=_string_field(record, "@message"),
        severity=_string_field(diagnostic, "severity"),
        summary=_string_field(diagnostic, "summary"),
        detail=_string_field(diagnostic, "detail"),
    )


def parse_terraform_logs(logs: bytes | str | None) -> list[TerraformLog]:
    """Parse newline separated JSON log lines, skipping blank ones.

    Raises ValueError if a line is not a valid log record.
    """
    if not logs:
        return []
    text = logs.decode("utf-8", errors="replace") if isinstance(logs, bytes) else logs
    return [_parse_line(line) for line in (raw.strip() for raw in text.split("\n")) if line]


class TerraformError(Exception):
    """A Terraform operation failed; the message collects its error logs."""

    operation = "terraform"

    def __init__(self, logs: bytes | str | None) -> None:
        base = f"{self.operation} failed"
        self.parse_error: str | None = None
        try:
            self.logs = parse_terraform_logs(logs)
        except ValueError as exc:
            self.logs = []
            self.parse_error = str(exc)
            message = f"{self.parse_error}: {base}"
        else:
            details = [log.describe() for log in self.logs if log.level == _LEVEL_ERROR]
            message = f"{base}: " + "\n".join(details)
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ApplyFailed(TerraformError):
    """A terraform apply call failed."""

    operation = "apply"


class DestroyFailed(TerraformError):
    """A terraform destroy call failed."""

    operation = "destroy"


class RefreshFailed(TerraformError):
    """A terraform refresh call failed."""

    operation = "refresh"


class PlanFailed(TerraformError):
    """A terraform plan call failed."""

    operation = "plan"