"""Consumer controls: query parameters and Last-Event-ID into a StreamConfig."""

import re
from dataclasses import dataclass
from urllib.parse import unquote

DEFAULT_BACKLOG = 200
MAX_BACKLOG = 2000

DEFAULT_HEARTBEAT = 15
MIN_HEARTBEAT = 5
MAX_HEARTBEAT = 60

MIN_PRIORITY = 0
MAX_PRIORITY = 7

WILDCARD = "*"

_FALSY_TOKENS = ("0", "false", "off")
_INT_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class StreamConfig:
    playback_enabled: bool = True
    backlog: int = DEFAULT_BACKLOG
    heartbeat_seconds: int = DEFAULT_HEARTBEAT
    priority_min: int | None = None
    priority_max: int | None = None
    units: tuple[str, ...] = ()
    all_units: bool = False
    resume_cursor: str | None = None

    @property
    def priority_filtered(self) -> bool:
        return self.priority_min is not None or self.priority_max is not None

    @property
    def internal_unit(self) -> str | None:
        """Unit attached to internal events: the first filtered unit, if any."""
        if self.all_units or not self.units:
            return None
        return self.units[0]

    def describe(self) -> str:
        if self.priority_filtered:
            low = self.priority_min if self.priority_min is not None else MIN_PRIORITY
            high = self.priority_max if self.priority_max is not None else MAX_PRIORITY
            priority = f"{low}..{high}"
        else:
            priority = "any"
        unit = WILDCARD if self.all_units else ",".join(self.units)
        return (
            f"playback={'1' if self.playback_enabled else '0'} "
            f"backlog={self.backlog} priority={priority} unit={unit} "
            f"heartbeat={self.heartbeat_seconds}s"
        )


def _parse_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def parse_playback(value) -> bool:
    """Playback is on unless explicitly switched off."""
    if value is False:
        return False
    if isinstance(value, int) and not isinstance(value, bool):
        return value != 0
    if isinstance(value, str):
        return value not in _FALSY_TOKENS
    return True


def parse_bounded(value, default: int, low: int, high: int) -> int:
    if value is None:
        return default
    n = _parse_int(value)
    if n is None:
        return default
    return _clamp(n, low, high)


def parse_priority(value) -> int | None:
    n = _parse_int(value)
    if n is None:
        return None
    return _clamp(n, MIN_PRIORITY, MAX_PRIORITY)


def parse_units(value, default_unit: str) -> tuple[tuple[str, ...], bool]:
    """Return (units, all_units) for a comma list or the wildcard."""
    units: list[str] = []
    if isinstance(value, str) and value:
        for part in value.split(","):
            part = part.strip()
            if part == WILDCARD:
                return (), True
            if part and part not in units:
                units.append(part)
    if not units:
        units = [default_unit]
    return tuple(units), False


def parse_resume_cursor(last_event_id) -> str | None:
    if not isinstance(last_event_id, str) or not last_event_id:
        return None
    cursor = unquote(last_event_id)
    return cursor or None


def parse_controls(params, last_event_id=None, default_unit: str = "wsprrypi.service") -> StreamConfig:
    """Normalize raw consumer controls. Never raises; bad values fall back."""
    params = params or {}

    priority_min = parse_priority(params.get("priority_min"))
    priority_max = parse_priority(params.get("priority_max"))
    if priority_min is not None and priority_max is not None and priority_min > priority_max:
        priority_min, priority_max = priority_max, priority_min

    units, all_units = parse_units(params.get("unit"), default_unit)

    return StreamConfig(
        playback_enabled=parse_playback(params.get("playback", "1")),
        backlog=parse_bounded(params.get("backlog"), DEFAULT_BACKLOG, 0, MAX_BACKLOG),
        heartbeat_seconds=parse_bounded(
            params.get("heartbeat"), DEFAULT_HEARTBEAT, MIN_HEARTBEAT, MAX_HEARTBEAT,
        ),
        priority_min=priority_min,
        priority_max=priority_max,
        units=units,
        all_units=all_units,
        resume_cursor=parse_resume_cursor(last_event_id),
    )
