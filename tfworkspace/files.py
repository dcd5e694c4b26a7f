"""Produces the Terraform configuration and state files of a workspace."""

from __future__ import annotations

import base64
import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .timeouts import OperationTimeouts, insert_timeouts_meta

ANNOTATION_KEY_EXTERNAL_NAME = "crossplane.io/external-name"
ANNOTATION_KEY_PRIVATE_RAW_ATTRIBUTE = "upjet.upbound.io/private"

MAIN_TF_FILE = "main.tf.json"
STATE_FILE = "terraform.tfstate"
_STATE_VERSION = 4


@dataclass
class ProviderRequirement:
    """Where the provider comes from and which version of it is needed."""

    source: str = ""
    version: str = ""


@dataclass
class Setup:
    """Terraform version, provider requirement and provider configuration."""

    version: str = ""
    requirement: ProviderRequirement = field(default_factory=ProviderRequirement)
    configuration: dict[str, Any] | None = None
    client_metadata: dict[str, str] | None = None

    def as_map(self) -> dict[str, Any]:
        """The setup as a plain mapping."""
        return {
            "version": self.version,
            "requirement": {
                "source": self.requirement.source,
                "version": self.requirement.version,
            },
            "configuration": self.configuration,
            "client_metadata": self.client_metadata,
        }

    def filter_sensitive_information(self, text: str) -> str:
        """Replace every non-empty string configuration value in text."""
        for value in (self.configuration or {}).values():
            if isinstance(value, str) and value:
                text = text.replace(value, "REDACTED")
        return text


@dataclass
class Terraformed:
    """A managed resource backed by a Terraform resource."""

    name: str = ""
    uid: str = ""
    terraform_resource_type: str = ""
    terraform_schema_version: int = 0
    parameters: dict[str, Any] = field(default_factory=dict)
    observation: dict[str, Any] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: datetime | None = None

    @property
    def external_name(self) -> str:
        return self.annotations.get(ANNOTATION_KEY_EXTERNAL_NAME, "")

    @property
    def was_deleted(self) -> bool:
        return self.deletion_timestamp is not None


def _name_as_identifier(parameters: dict[str, Any], external_name: str) -> None:
    parameters["name"] = external_name


GetIDFn = Callable[[str, dict[str, Any], dict[str, Any]], str]


@dataclass
class ResourceConfig:
    """How a resource's identifier and timeouts map to Terraform.

    When ``get_id_fn`` is None the external name is used as the Terraform id.
    """

    name: str = ""
    operation_timeouts: OperationTimeouts = field(default_factory=OperationTimeouts)
    set_identifier_argument_fn: Callable[[dict[str, Any], str], None] = _name_as_identifier
    get_id_fn: Optional[GetIDFn] = None


class NonStringIDError(ValueError):
    """The id attribute in the state file is not a string."""


def _go_text(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _dump_sorted(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _write_private(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)


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


class FileProducer:
    """Caches a resource's parameters and observation and writes workspace files."""

    def __init__(
        self,
        directory: str | os.PathLike[str],
        resource: Terraformed,
        setup: Setup,
        config: ResourceConfig,
    ) -> None:
        self.directory = Path(directory)
        self.resource = resource
        self.setup = setup
        self.config = config
        self.parameters: dict[str, Any] = dict(resource.parameters)
        config.set_identifier_argument_fn(self.parameters, resource.external_name)
        self.observation: dict[str, Any] = dict(resource.observation)

    def write_main_tf(self) -> None:
        """Write main.tf.json holding the desired configuration."""
        self.parameters["lifecycle"] = {"prevent_destroy": not self.resource.was_deleted}
        timeouts = self.config.operation_timeouts.as_parameter()
        if timeouts:
            self.parameters["timeouts"] = timeouts
        source = self.setup.requirement.source
        provider = source.split("/")[-1]
        document = {
            "terraform": {
                "required_providers": {
                    provider: {"source": source, "version": self.setup.requirement.version},
                },
            },
            "provider": {provider: self.setup.configuration},
            "resource": {
                self.resource.terraform_resource_type: {
                    self.resource.name: self.parameters,
                },
            },
        }
        _write_private(self.directory / MAIN_TF_FILE, _dump_sorted(document).encode())

    def _resource_id(self) -> str:
        external_name = self.resource.external_name
        if self.config.get_id_fn is None:
            return external_name
        return self.config.get_id_fn(external_name, self.parameters, self.setup.as_map())

    def ensure_tf_state(self) -> None:
        """Write a state file for the resource unless one exists or it is being deleted."""
        empty = self.is_state_empty()
        if not empty or self.resource.was_deleted:
            return
        base = {**self.parameters, **self.observation}
        base["id"] = self._resource_id()
        attributes = json.loads(_dump_sorted(base))

        private_raw: bytes | None = None
        annotation = self.resource.annotations.get(ANNOTATION_KEY_PRIVATE_RAW_ATTRIBUTE)
        if annotation is not None:
            private_raw = annotation.encode()
        merged = insert_timeouts_meta(private_raw, self.config.operation_timeouts)
        if isinstance(merged, str):
            merged = merged.encode()

        instance: dict[str, Any] = {
            "schema_version": self.resource.terraform_schema_version,
            "attributes": attributes,
        }
        if merged:
            instance["private"] = base64.b64encode(merged).decode("ascii")
        state = {
            "version": _STATE_VERSION,
            "terraform_version": self.setup.version,
            "serial": 1,
            "lineage": self.resource.uid,
            "outputs": None,
            "resources": [
                {
                    "mode": "managed",
                    "type": self.resource.terraform_resource_type,
                    "name": self.resource.name,
                    "provider": (
                        f'provider["registry.terraform.io/{self.setup.requirement.source}"]'
                    ),
                    "instances": [instance],
                }
            ],
        }
        raw = json.dumps(state, separators=(",", ":"), ensure_ascii=False)
        _write_private(self.directory / STATE_FILE, raw.encode())

    def is_state_empty(self) -> bool:
        """Whether the state file is missing or holds no resource with an id."""
        try:
            data = (self.directory / STATE_FILE).read_bytes()
        except FileNotFoundError:
            return True
        try:
            state = json.loads(data)
        except ValueError as exc:
            raise ValueError(f"cannot unmarshal tfstate file: {exc}") from exc
        attributes = _state_attributes(state)
        if attributes is None:
            return True
        if not isinstance(attributes, dict):
            raise ValueError("cannot unmarshal state attributes: not a JSON object")
        if "id" not in attributes:
            return True
        identifier = attributes["id"]
        if not isinstance(identifier, str):
            raise NonStringIDError(f"cannot work with a non-string id: {_go_text(identifier)}")
        return identifier == ""