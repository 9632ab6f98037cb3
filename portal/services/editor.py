from typing import Any, Callable

from portal.services.merge import deep_merge, build_nested
from portal.services.schedule import (
    MODE_ALWAYS_OPEN,
    MODE_PER_DAY,
    MODE_SHARED_SUBSET,
    MODE_UNIFORM,
    WEEKDAYS,
    coerce_bool,
    display_mode,
    read_schedule,
)

TOGGLE_CONTROLS = ("sameEveryDay", "sameTimeSelectedDays")
SHARED_TIME_CONTROLS = ("everyDayOpen", "everyDayClose")
# Propagation reads the selected-days pair in shared-subset mode; keep it in step with the shared controls.
SELECTED_DAYS_MIRROR = {"everyDayOpen": "selectedDaysOpen", "everyDayClose": "selectedDaysClose"}

ChangeCallback = Callable[[str, Any], None]


class ScheduleEditorError(ValueError):
    pass


def _is_flag(field_path: str) -> bool:
    return field_path in ("open247",) + TOGGLE_CONTROLS or field_path.endswith(".isOpen")


def visible_controls(schedule_data: dict[str, Any] | None) -> list[str]:
    """Field paths the editor renders for ``schedule_data``, in display order."""
    schedule = read_schedule(schedule_data)
    mode = display_mode(schedule)
    controls = ["open247"]
    if mode == MODE_ALWAYS_OPEN:
        return controls
    controls.extend(TOGGLE_CONTROLS)
    if mode == MODE_UNIFORM:
        controls.extend(SHARED_TIME_CONTROLS)
    elif mode == MODE_SHARED_SUBSET:
        controls.extend(SHARED_TIME_CONTROLS)
        controls.extend(f"days.{day}.isOpen" for day in WEEKDAYS)
    elif mode == MODE_PER_DAY:
        for day in WEEKDAYS:
            controls.append(f"days.{day}.isOpen")
            if schedule["days"][day]["isOpen"]:
                controls.extend([f"days.{day}.open", f"days.{day}.close"])
    return controls


class ScheduleEditor:
    """
    Form model behind the weekly hours editor.

    ``schedule_data`` is the flattened shape: ``open247`` sits next to the
    schedule fields instead of wrapping them. Every accepted change is
    reported through ``on_change(path, value)`` where ``path`` is ``open247``
    or ``schedule.<field_path>``.
    """

    def __init__(self, schedule_data: dict[str, Any] | None, on_change: ChangeCallback, disabled: bool = False):
        self._data = read_schedule(schedule_data)
        self._on_change = on_change
        self.disabled = disabled

    @property
    def data(self) -> dict[str, Any]:
        return read_schedule(self._data)

    @property
    def mode(self) -> str:
        return display_mode(self._data)

    def visible_controls(self) -> list[str]:
        return visible_controls(self._data)

    def is_control_disabled(self, field_path: str) -> bool:
        if self.disabled:
            return True
        return field_path == "sameTimeSelectedDays" and self._data["sameEveryDay"]

    def change(self, field_path: str, value: Any) -> list[tuple[str, Any]]:
        if field_path not in self.visible_controls():
            raise ScheduleEditorError(f"{field_path} is not editable in {self.mode} mode")
        if self.is_control_disabled(field_path):
            raise ScheduleEditorError(f"{field_path} is disabled")

        final_value = coerce_bool(value) if _is_flag(field_path) else ("" if value is None else str(value))
        final_path = field_path if field_path == "open247" else f"schedule.{field_path}"
        emitted = [(final_path, final_value)]
        if field_path == "sameEveryDay" and final_value is True:
            emitted.append(("schedule.sameTimeSelectedDays", False))
        elif field_path == "sameTimeSelectedDays" and final_value is True:
            emitted.append(("schedule.sameEveryDay", False))
            for source, mirror in SELECTED_DAYS_MIRROR.items():
                emitted.append((f"schedule.{mirror}", self._data[source]))
        elif field_path in SELECTED_DAYS_MIRROR and self._data["sameTimeSelectedDays"]:
            emitted.append((f"schedule.{SELECTED_DAYS_MIRROR[field_path]}", final_value))

        for path, emitted_value in emitted:
            self._apply(path, emitted_value)
            self._on_change(path, emitted_value)
        return emitted

    def _apply(self, path: str, value: Any) -> None:
        local_path = path[len("schedule."):] if path.startswith("schedule.") else path
        self._data = deep_merge(self._data, build_nested(local_path, value))
