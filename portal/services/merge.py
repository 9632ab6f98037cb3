import copy
import logging
import threading
from typing import Any

from portal.services.schedule import SCHEDULE_FIELD_PATHS, ScheduleValidationError

logger = logging.getLogger(__name__)


def deep_merge(target: Any, source: Any) -> Any:
    """
    Merge ``source`` onto ``target`` without touching either argument.

    Nested dicts present on both sides are merged key by key; any other value
    from ``source`` (scalars, lists, ``None``) replaces the target's value.
    A non-dict ``source`` short-circuits to a shallow copy of itself.
    """
    if not isinstance(source, dict):
        if isinstance(source, list):
            return list(source)
        return source
    if not isinstance(target, dict):
        return copy.deepcopy(source)

    output = copy.deepcopy(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(output.get(key), dict):
            output[key] = deep_merge(output[key], value)
        else:
            output[key] = copy.deepcopy(value)
    return output


def build_nested(path: str, value: Any) -> dict[str, Any]:
    segments = (path or "").split(".")
    if any(not segment.strip() for segment in segments):
        raise ValueError(f"Invalid field path: {path!r}")
    nested: Any = value
    for segment in reversed(segments):
        nested = {segment: nested}
    return nested


def set_field_edit(edits: dict[str, Any] | None, path: str, value: Any) -> dict[str, Any]:
    return deep_merge(edits or {}, build_nested(path, value))


def remap_schedule_path(field_path: str, prefix: str | None = "services") -> str:
    # Editor paths already carry "schedule." where needed; never prefix it twice.
    if not prefix:
        return field_path
    return f"{prefix}.{field_path}"


def validate_schedule_path(field_path: str) -> str:
    if field_path not in SCHEDULE_FIELD_PATHS:
        raise ScheduleValidationError(f"Unknown schedule field path: {field_path!r}")
    return field_path


class PendingEdits:
    """Uncommitted field edits per record, addressed by dot-path."""

    def __init__(self) -> None:
        self._edits: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def set(self, record_id: str, path: str, value: Any) -> dict[str, Any]:
        with self._lock:
            updated = set_field_edit(self._edits.get(record_id), path, value)
            self._edits[record_id] = updated
            return copy.deepcopy(updated)

    def get(self, record_id: str) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._edits.get(record_id, {}))

    def merged(self, record_id: str, base: dict[str, Any]) -> dict[str, Any]:
        return deep_merge(base, self.get(record_id))

    def discard(self, record_id: str) -> bool:
        with self._lock:
            dropped = self._edits.pop(record_id, None) is not None
        if dropped:
            logger.debug("Discarded pending edits for %s", record_id)
        return dropped

    def record_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._edits)

    def clear(self) -> None:
        with self._lock:
            self._edits.clear()
