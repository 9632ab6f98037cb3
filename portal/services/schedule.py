import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DAY_FIELDS = ("isOpen", "open", "close")
SCHEDULE_FLAGS = ("sameEveryDay", "sameTimeSelectedDays")
SCHEDULE_TIMES = ("everyDayOpen", "everyDayClose", "selectedDaysOpen", "selectedDaysClose")
ALWAYS_OPEN_HOURS = ("00:00", "23:59")
TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")

MODE_ALWAYS_OPEN = "always_open"
MODE_UNIFORM = "uniform"
MODE_SHARED_SUBSET = "shared_subset"
MODE_PER_DAY = "per_day"

# Paths the schedule editor may emit, relative to the record that embeds the schedule.
SCHEDULE_FIELD_PATHS = frozenset(
    ["open247"]
    + [f"schedule.{name}" for name in SCHEDULE_FLAGS + SCHEDULE_TIMES]
    + [f"schedule.days.{day}.{field}" for day in WEEKDAYS for field in DAY_FIELDS]
)


class ScheduleValidationError(ValueError):
    pass


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def default_day() -> dict[str, Any]:
    return {"isOpen": False, "open": "", "close": ""}


def default_schedule() -> dict[str, Any]:
    return {
        "sameEveryDay": False,
        "sameTimeSelectedDays": False,
        "everyDayOpen": "",
        "everyDayClose": "",
        "selectedDaysOpen": "",
        "selectedDaysClose": "",
        "days": {day: default_day() for day in WEEKDAYS},
    }


def read_day(raw: Any) -> dict[str, Any]:
    source = raw if isinstance(raw, dict) else {}
    return {
        "isOpen": coerce_bool(source.get("isOpen")),
        "open": _as_text(source.get("open")),
        "close": _as_text(source.get("close")),
    }


def read_schedule(data: Any) -> dict[str, Any]:
    """
    Read a flattened schedule (``open247`` next to the schedule fields).

    Absent or malformed input never raises; every flag, time string and all
    seven weekdays come back populated with their defaults. Time strings are
    returned verbatim.
    """
    source = data if isinstance(data, dict) else {}
    raw_days = source.get("days")
    if not isinstance(raw_days, dict):
        raw_days = {}

    schedule: dict[str, Any] = {"open247": coerce_bool(source.get("open247"))}
    for name in SCHEDULE_FLAGS:
        schedule[name] = coerce_bool(source.get(name))
    for name in SCHEDULE_TIMES:
        schedule[name] = _as_text(source.get(name))
    schedule["days"] = {day: read_day(raw_days.get(day)) for day in WEEKDAYS}
    return schedule


def read_embedded(container: Any, schedule_key: str = "schedule") -> dict[str, Any]:
    """Read ``{"open247": ..., "schedule": {...}}`` from a record or its ``services`` block."""
    flat = flatten_embedded(container, schedule_key)
    open247 = flat.pop("open247")
    return {"open247": open247, schedule_key: flat}


def flatten_embedded(container: Any, schedule_key: str = "schedule") -> dict[str, Any]:
    source = container if isinstance(container, dict) else {}
    nested = source.get(schedule_key)
    if not isinstance(nested, dict):
        nested = {}
    flat = dict(nested)
    # Older facility documents kept open247 inside the schedule itself.
    flat["open247"] = source.get("open247", nested.get("open247"))
    return read_schedule(flat)


def display_mode(data: Any) -> str:
    schedule = read_schedule(data)
    if schedule["open247"]:
        return MODE_ALWAYS_OPEN
    if schedule["sameEveryDay"]:
        return MODE_UNIFORM
    if schedule["sameTimeSelectedDays"]:
        return MODE_SHARED_SUBSET
    return MODE_PER_DAY


def validate_time(value: Any, field_name: str) -> str:
    if value is None or value == "":
        return ""
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ScheduleValidationError(f"{field_name} must be a 24-hour HH:MM time, got {value!r}")
    return value


def validate_schedule(schedule: Any) -> None:
    """Reject schedule documents that cannot be stored as-is."""
    if schedule is None:
        return
    if not isinstance(schedule, dict):
        raise ScheduleValidationError("schedule must be an object")

    for name in SCHEDULE_FLAGS:
        if name in schedule and not isinstance(schedule[name], bool):
            raise ScheduleValidationError(f"schedule.{name} must be a boolean")
    if schedule.get("sameEveryDay") is True and schedule.get("sameTimeSelectedDays") is True:
        raise ScheduleValidationError("sameEveryDay and sameTimeSelectedDays cannot both be enabled")
    for name in SCHEDULE_TIMES:
        if name in schedule:
            validate_time(schedule[name], f"schedule.{name}")

    days = schedule.get("days")
    if days is None:
        return
    if not isinstance(days, dict):
        raise ScheduleValidationError("schedule.days must be an object keyed by weekday")
    unknown = sorted(set(days) - set(WEEKDAYS))
    if unknown:
        raise ScheduleValidationError(f"Unknown weekday in schedule.days: {', '.join(unknown)}")
    for day, hours in days.items():
        if not isinstance(hours, dict):
            raise ScheduleValidationError(f"schedule.days.{day} must be an object")
        if "isOpen" in hours and not isinstance(hours["isOpen"], bool):
            raise ScheduleValidationError(f"schedule.days.{day}.isOpen must be a boolean")
        for name in ("open", "close"):
            if name in hours:
                validate_time(hours[name], f"schedule.days.{day}.{name}")


def validate_embedded(container: Any, schedule_key: str = "schedule") -> None:
    if container is None:
        return
    if not isinstance(container, dict):
        raise ScheduleValidationError("schedule container must be an object")
    if "open247" in container and not isinstance(container["open247"], bool):
        raise ScheduleValidationError("open247 must be a boolean")
    validate_schedule(container.get(schedule_key))


def _shared_pair(schedule: dict[str, Any]) -> tuple[str, str]:
    # The standalone editor stages the shared pair in everyDayOpen/everyDayClose.
    open_time = _as_text(schedule.get("selectedDaysOpen")) or _as_text(schedule.get("everyDayOpen"))
    close_time = _as_text(schedule.get("selectedDaysClose")) or _as_text(schedule.get("everyDayClose"))
    return open_time, close_time


def propagate_schedule(container: dict[str, Any], schedule_key: str = "schedule") -> dict[str, Any]:
    """
    Expand the "same time" shortcuts into concrete per-day hours, in place.

    ``sameTimeSelectedDays`` copies the shared pair into every day already
    marked open and leaves closed days untouched. ``sameEveryDay`` opens all
    seven days with ``everyDayOpen``/``everyDayClose`` once both are set.
    Anything else is a no-op.
    """
    schedule = container.get(schedule_key) if isinstance(container, dict) else None
    if not isinstance(schedule, dict):
        return container

    if schedule.get("sameTimeSelectedDays") is True:
        open_time, close_time = _shared_pair(schedule)
        days = schedule.get("days")
        if not isinstance(days, dict):
            return container
        touched = []
        for day in WEEKDAYS:
            hours = days.get(day)
            if isinstance(hours, dict) and hours.get("isOpen") is True:
                hours["open"] = open_time
                hours["close"] = close_time
                touched.append(day)
        logger.debug("Propagated shared hours %s-%s to %s", open_time, close_time, touched)
    elif schedule.get("sameEveryDay") is True:
        open_time = _as_text(schedule.get("everyDayOpen"))
        close_time = _as_text(schedule.get("everyDayClose"))
        if not open_time or not close_time:
            return container
        days = schedule.get("days")
        if not isinstance(days, dict):
            days = {}
            schedule["days"] = days
        for day in WEEKDAYS:
            hours = days.get(day)
            if not isinstance(hours, dict):
                hours = {}
                days[day] = hours
            hours["isOpen"] = True
            hours["open"] = open_time
            hours["close"] = close_time
        logger.debug("Propagated every-day hours %s-%s", open_time, close_time)
    return container


def effective_hours(data: Any) -> dict[str, dict[str, str] | None]:
    """Opening hours per weekday as a consumer should see them, ``None`` when closed."""
    schedule = read_schedule(data)
    mode = display_mode(schedule)
    output: dict[str, dict[str, str] | None] = {}
    for day in WEEKDAYS:
        hours = schedule["days"][day]
        if mode == MODE_ALWAYS_OPEN:
            output[day] = {"open": ALWAYS_OPEN_HOURS[0], "close": ALWAYS_OPEN_HOURS[1]}
        elif mode == MODE_UNIFORM:
            output[day] = {"open": schedule["everyDayOpen"], "close": schedule["everyDayClose"]}
        elif not hours["isOpen"]:
            output[day] = None
        elif mode == MODE_SHARED_SUBSET:
            open_time, close_time = _shared_pair(schedule)
            output[day] = {"open": open_time, "close": close_time}
        else:
            output[day] = {"open": hours["open"], "close": hours["close"]}
    return output
