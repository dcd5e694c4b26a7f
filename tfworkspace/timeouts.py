"""Operation timeouts as Terraform parameters and as private state metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import timedelta

# Key under which Terraform keeps timeouts in a resource's private metadata.
TF_META_TIMEOUT_KEY = "e2bfb730-ecaa-11e6-8f88-34363bc7c4c0"

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000


def _nanoseconds(delta: timedelta) -> int:
    return ((delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds) * _NS_PER_US


def _fraction(value: int, precision: int) -> str:
    digits = f"{value:0{precision}d}".rstrip("0")
    return f".{digits}" if digits else ""


def format_duration(delta: timedelta) -> str:
    """Render a duration the way Terraform expects, e.g. "30s", "2m0s", "1h0m0s"."""
    ns = _nanoseconds(delta)
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u == 0:
        return "0s"
    if u < _NS_PER_S:
        if u < _NS_PER_US:
            return f"{sign}{u}ns"
        if u < _NS_PER_MS:
            return f"{sign}{u // _NS_PER_US}{_fraction(u % _NS_PER_US, 3)}µs"
        return f"{sign}{u // _NS_PER_MS}{_fraction(u % _NS_PER_MS, 6)}ms"
    seconds, frac = divmod(u, _NS_PER_S)
    text = f"{seconds % 60}{_fraction(frac, 9)}s"
    minutes = seconds // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text


@dataclass
class OperationTimeouts:
    """Per-operation timeouts; a zero duration means not configured."""

    read: timedelta = field(default_factory=timedelta)
    create: timedelta = field(default_factory=timedelta)
    update: timedelta = field(default_factory=timedelta)
    delete: timedelta = field(default_factory=timedelta)

    def _configured(self):
        for name in ("read", "create", "update", "delete"):
            value = getattr(self, name)
            if format_duration(value) != "0s":
                yield name, value

    def as_parameter(self) -> dict[str, str]:
        """The configured timeouts as a Terraform "timeouts" block."""
        return {name: format_duration(value) for name, value in self._configured()}

    def as_metadata(self) -> dict[str, int]:
        """The configured timeouts in nanoseconds, as stored in private metadata."""
        return {name: _nanoseconds(value) for name, value in self._configured()}


def _dump(value: dict) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()


def insert_timeouts_meta(
    existing_meta: bytes | str | None, timeouts: OperationTimeouts
) -> bytes | str | None:
    """Merge the configured timeouts into existing private metadata.

    Returns the existing metadata untouched when no timeout is configured.
    Raises ValueError if the existing metadata cannot be parsed.
    """
    custom = timeouts.as_metadata()
    if not custom:
        return existing_meta
    if not existing_meta:
        return _dump({TF_META_TIMEOUT_KEY: custom})
    try:
        meta = json.loads(existing_meta)
    except ValueError as exc:
        raise ValueError(f"cannot parse existing metadata: {exc}") from exc
    if not isinstance(meta, dict):
        raise ValueError("cannot parse existing metadata: not a JSON object")
    existing = meta.get(TF_META_TIMEOUT_KEY)
    if isinstance(existing, dict):
        existing.update(custom)
    else:
        meta[TF_META_TIMEOUT_KEY] = custom
    return _dump(meta)