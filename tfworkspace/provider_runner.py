"""Runs a native Terraform provider as a shared gRPC server."""

from __future__ import annotations

import logging
import os
import queue
import re
import threading
from collections.abc import Iterable, Mapping, Sequence
from datetime import timedelta
from typing import Protocol

from .timeouts import format_duration

_FMT_REATTACH = (
    '{{"{name}":{{"Protocol":"grpc","ProtocolVersion":{version},"Pid":{pid},'
    '"Test": true,"Addr":{{"Network": "unix","String": "{address}"}}}}}}'
)
ENV_REATTACH_CONFIG = "TF_REATTACH_PROVIDERS"
ENV_MAGIC_COOKIE = "TF_PLUGIN_MAGIC_COOKIE"
# Terraform provider plugins refuse to start without this fixed handshake value.
MAGIC_COOKIE = "d602bf8f470bc67ca7faa0386276bbdd4330efaf76d1a219cb4d6991ca9872b2"
DEFAULT_PROTOCOL_VERSION = 5
REATTACH_TIMEOUT = timedelta(minutes=1)

_REATTACH_LINE = re.compile(r".*unix\|(.*)\|grpc.*")


class ProviderRunner(Protocol):
    """Starts a provider process and reports how Terraform can reattach to it."""

    def start(self) -> str:
        """Return the reattach configuration of the running provider."""


class NoOpProviderRunner:
    """A runner that starts nothing."""

    def start(self) -> str:
        return ""


class _Process(Protocol):
    @property
    def stdout(self) -> Iterable[bytes | str]: ...

    def wait(self) -> int: ...


class ProcessLauncher(Protocol):
    """Launches the native provider process."""

    def launch(self, path: str, args: Sequence[str], env: Mapping[str, str]) -> _Process:
        """Start path with args; the result has a line iterable stdout and wait()."""


class ReattachTimeoutError(TimeoutError):
    """The provider did not announce its reattach address in time."""


class SharedProvider:
    """Runs one native provider process shared by all Terraform invocations."""

    def __init__(
        self,
        native_provider_path: str,
        native_provider_name: str,
        launcher: ProcessLauncher,
        *,
        args: Sequence[str] = (),
        protocol_version: int = DEFAULT_PROTOCOL_VERSION,
        timeout: timedelta = REATTACH_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.native_provider_path = native_provider_path
        self.native_provider_name = native_provider_name
        self.native_provider_args = list(args)
        self.launcher = launcher
        self.protocol_version = protocol_version
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._reattach_config = ""
        self._lock = threading.Lock()

    def start(self) -> str:
        """Start the provider unless it runs already; return its reattach configuration."""
        with self._lock:
            if self._reattach_config:
                self.logger.debug(
                    "Shared gRPC server is running at %s: %s",
                    self.native_provider_path,
                    self._reattach_config,
                )
                return self._reattach_config
            results: queue.Queue[tuple[str, object]] = queue.Queue()
            threading.Thread(target=self._serve, args=(results,), daemon=True).start()
            try:
                kind, value = results.get(timeout=self.timeout.total_seconds())
            except queue.Empty:
                raise ReattachTimeoutError(
                    f"timed out after {format_duration(self.timeout)} "
                    "while waiting for the reattach configuration string"
                ) from None
            if kind == "error":
                assert isinstance(value, BaseException)
                raise value
            self._reattach_config = str(value)
            return self._reattach_config

    def _reattach_for(self, address: str) -> str:
        return _FMT_REATTACH.format(
            name=self.native_provider_name,
            version=self.protocol_version,
            pid=os.getpid(),
            address=address,
        )

    def _serve(self, results: queue.Queue) -> None:
        reported = False
        try:
            env = {**os.environ, ENV_MAGIC_COOKIE: MAGIC_COOKIE}
            try:
                process = self.launcher.launch(
                    self.native_provider_path, list(self.native_provider_args), env
                )
            except Exception as exc:
                results.put(("error", exc))
                reported = True
                return
            for raw in process.stdout:
                line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                match = _REATTACH_LINE.search(line.rstrip("\r\n"))
                if match:
                    results.put(("reattach", self._reattach_for(match.group(1))))
                    reported = True
                    break
            try:
                code = process.wait()
            except Exception as exc:
                error: Exception | None = exc
            else:
                error = ChildProcessError(f"native provider exited with status {code}") if code else None
            if error is not None:
                self.logger.info("Native Terraform provider process error: %s", error)
                results.put(("error", error))
                reported = True
        finally:
            if not reported:
                results.put(("reattach", ""))
            with self._lock:
                self._reattach_config = ""