"""Runs Terraform operations in a workspace directory and tracks their status."""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .errors import ApplyFailed, DestroyFailed, PlanFailed, RefreshFailed, TerraformError
from .operation import Operation

_STATE_FILE = "terraform.tfstate"
_COMMON_FLAGS = ("-auto-approve", "-input=false", "-lock=false", "-json")
_APPLY_ARGS = ("terraform", "apply", *_COMMON_FLAGS)
_DESTROY_ARGS = ("terraform", "destroy", *_COMMON_FLAGS)
_REFRESH_ARGS = ("terraform", "apply", "-refresh-only", *_COMMON_FLAGS)
_PLAN_ARGS = ("terraform", "plan", "-refresh=false", "-input=false", "-lock=false", "-json")

Callback = Callable[[BaseException | None], None]


@dataclass(frozen=True)
class CommandResult:
    """The combined output and exit status of a finished command."""

    output: bytes | str = b""
    returncode: int = 0

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        if isinstance(self.output, bytes):
            return self.output.decode("utf-8", errors="replace")
        return self.output


class Executor(Protocol):
    """Runs a command to completion and reports its combined output."""

    def run(self, args: Sequence[str], cwd: str, env: Mapping[str, str]) -> CommandResult:
        """Run args in cwd with the given environment."""


class OperationInProgressError(RuntimeError):
    """Another Terraform operation is still running in the workspace."""


class ChangeSummaryError(ValueError):
    """The plan output holds no usable change summary."""


@dataclass
class ApplyResult:
    """The state after an apply operation."""

    state: dict[str, Any] | None = None


@dataclass
class RefreshResult:
    """The current state of the resource, or what is still going on."""

    exists: bool = False
    is_applying: bool = False
    is_destroying: bool = False
    state: dict[str, Any] | None = None


@dataclass
class PlanResult:
    """How the desired state compares with the current one."""

    exists: bool = False
    up_to_date: bool = False


def _state_attributes(state: Any) -> Any:
    if not isinstance(state, dict):
        return None
    resources = state.get("resources") or []
    if not resources or not isinstance(resources[0], dict):
        return None
    instances = resources[0].get("instances") or []
    if not instances or not isinstance(instances[0], dict):
        return None
    return instances[0].get("attributes")


def _identity(text: str) -> str:
    return text


class Workspace:
    """Runs Terraform commands in one directory and remembers the last operation."""

    def __init__(
        self,
        directory: str | os.PathLike[str],
        executor: Executor,
        *,
        logger: logging.Logger | None = None,
        last_operation: Operation | None = None,
        filter_fn: Callable[[str], str] | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)
        self.last_operation = last_operation if last_operation is not None else Operation()
        self.filter_fn = filter_fn or _identity
        self.env: dict[str, str] = {}

    def _run(self, args: Sequence[str]) -> CommandResult:
        return self.executor.run(list(args), str(self.directory), {**os.environ, **self.env})

    def _ensure_idle(self) -> None:
        op = self.last_operation
        if op.is_running():
            raise OperationInProgressError(
                f"{op.op_type} operation that started at {op.start_time()} is still running"
            )

    def _read_state(self) -> dict[str, Any]:
        raw = (self.directory / _STATE_FILE).read_bytes()
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ValueError(f"cannot unmarshal tfstate file: {exc}") from exc

    def _start_async(
        self,
        op_type: str,
        args: Sequence[str],
        failure: type[TerraformError],
        callback: Callback,
    ) -> threading.Thread:
        self.last_operation.mark_start(op_type)
        thread = threading.Thread(
            target=self._run_async, args=(op_type, args, failure, callback), daemon=True
        )
        thread.start()
        return thread

    def _run_async(
        self,
        op_type: str,
        args: Sequence[str],
        failure: type[TerraformError],
        callback: Callback,
    ) -> None:
        error: BaseException | None = None
        try:
            result = self._run(args)
        except Exception as exc:
            self.last_operation.mark_end()
            error = exc
        else:
            self.last_operation.mark_end()
            self.logger.debug("%s async ended: %s", op_type, self.filter_fn(result.text))
            if not result.succeeded:
                error = failure(result.output)
        try:
            callback(error)
        except Exception as exc:
            self.logger.info("callback failed: %s", exc)

    def apply_async(self, callback: Callback) -> threading.Thread:
        """Start terraform apply in the background; callback gets its error or None."""
        self._ensure_idle()
        return self._start_async("apply", _APPLY_ARGS, ApplyFailed, callback)

    def apply(self) -> ApplyResult:
        """Run terraform apply and return the resulting state."""
        self._ensure_idle()
        result = self._run(_APPLY_ARGS)
        self.logger.debug("apply ended: %s", self.filter_fn(result.text))
        if not result.succeeded:
            raise ApplyFailed(result.output)
        return ApplyResult(state=self._read_state())

    def destroy_async(self, callback: Callback) -> threading.Thread | None:
        """Start terraform destroy in the background; a repeated call does nothing."""
        if self.last_operation.op_type == "destroy":
            return None
        self._ensure_idle()
        return self._start_async("destroy", _DESTROY_ARGS, DestroyFailed, callback)

    def destroy(self) -> None:
        """Run terraform destroy."""
        self._ensure_idle()
        result = self._run(_DESTROY_ARGS)
        self.logger.debug("destroy ended: %s", self.filter_fn(result.text))
        if not result.succeeded:
            raise DestroyFailed(result.output)

    def refresh(self) -> RefreshResult:
        """Refresh the state file with the resource's current state."""
        op = self.last_operation
        if op.is_running():
            return RefreshResult(
                is_applying=op.op_type == "apply",
                is_destroying=op.op_type == "destroy",
            )
        flush = op.is_ended()
        try:
            result = self._run(_REFRESH_ARGS)
            self.logger.debug("refresh ended: %s", self.filter_fn(result.text))
            if not result.succeeded:
                raise RefreshFailed(result.output)
            state = self._read_state()
            return RefreshResult(exists=_state_attributes(state) is not None, state=state)
        finally:
            if flush:
                op.flush()

    def plan(self) -> PlanResult:
        """Run terraform plan and summarise the pending changes."""
        self._ensure_idle()
        result = self._run(_PLAN_ARGS)
        out = result.text
        self.logger.debug("plan ended: %s", self.filter_fn(out))
        if not result.succeeded:
            raise PlanFailed(result.output)
        line = next((l for l in out.split("\n") if '"type":"change_summary"' in l), "")
        if not line:
            raise ChangeSummaryError(f"cannot find the change summary line in plan log: {out}")
        try:
            summary = json.loads(line)
            changes = summary.get("changes") or {}
            add = float(changes.get("add") or 0)
            change = float(changes.get("change") or 0)
        except (ValueError, TypeError, AttributeError) as exc:
            raise ChangeSummaryError(f"cannot unmarshal change summary json: {exc}") from exc
        return PlanResult(exists=add == 0, up_to_date=change == 0)