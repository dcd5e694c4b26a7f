"""Keeps one Terraform workspace per managed resource."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any

from .files import FileProducer, ResourceConfig, Setup, Terraformed
from .provider_runner import ENV_REATTACH_CONFIG, NoOpProviderRunner, ProviderRunner
from .workspace import Executor, Workspace

_LOCK_FILE = ".terraform.lock.hcl"
_INIT_ARGS = ("terraform", "init", "-input=false")


class WorkspaceInitError(RuntimeError):
    """terraform init failed in a new workspace."""


class WorkspaceStore:
    """Creates, prepares and removes the workspaces of managed resources."""

    def __init__(
        self,
        executor: Executor,
        *,
        base_dir: str | os.PathLike[str] | None = None,
        provider_runner: ProviderRunner | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.executor = executor
        self.base_dir = Path(base_dir) if base_dir is not None else Path(tempfile.gettempdir())
        self.provider_runner = provider_runner if provider_runner is not None else NoOpProviderRunner()
        self.logger = logger or logging.getLogger(__name__)
        self._store: dict[str, Workspace] = {}
        self._lock = threading.Lock()

    def workspace(
        self, resource: Terraformed, setup: Setup, config: ResourceConfig
    ) -> Workspace:
        """Return the resource's workspace with its files written and initialised."""
        directory = self.base_dir / resource.uid
        directory.mkdir(parents=True, exist_ok=True)
        with self._lock:
            ws = self._store.get(resource.uid)
            if ws is None:
                ws = Workspace(
                    directory,
                    self.executor,
                    logger=self.logger,
                    filter_fn=setup.filter_sensitive_information,
                )
                self._store[resource.uid] = ws
        # Files must not change while an operation runs in the workspace.
        if ws.last_operation.is_running():
            return ws
        producer = FileProducer(directory, resource, setup, config)
        producer.ensure_tf_state()
        producer.write_main_tf()
        attachment = self.provider_runner.start()
        initialised = (directory / _LOCK_FILE).exists()
        ws.env[ENV_REATTACH_CONFIG] = attachment
        if initialised:
            return ws
        result = self.executor.run(list(_INIT_ARGS), str(ws.directory), dict(os.environ))
        self.logger.debug("init ended: %s", result.text)
        if not result.succeeded:
            raise WorkspaceInitError(f"cannot init workspace: {result.text}")
        return ws

    def remove(self, obj: Any) -> None:
        """Delete the object's workspace directory and forget the workspace."""
        with self._lock:
            ws = self._store.get(obj.uid)
            if ws is None:
                return
            try:
                if ws.directory.exists():
                    shutil.rmtree(ws.directory)
            except OSError as exc:
                raise OSError(f"cannot remove workspace folder: {exc}") from exc
            del self._store[obj.uid]