"""journalctl argument construction, shared by replay and follow."""

import shlex

from journal_sse.controls import MAX_PRIORITY, MIN_PRIORITY, StreamConfig

BASE_ARGS = ["--no-pager", "-o", "json"]


def build_filter_args(config: StreamConfig) -> list[str]:
    """Priority range and unit selectors for a connection."""
    args: list[str] = []

    if config.priority_filtered:
        low = config.priority_min if config.priority_min is not None else MIN_PRIORITY
        high = config.priority_max if config.priority_max is not None else MAX_PRIORITY
        args += ["-p", str(low) if low == high else f"{low}..{high}"]

    if not config.all_units:
        for unit in config.units:
            args += ["-u", unit]

    return args


def replay_command(journalctl: str, config: StreamConfig, cursor: str | None) -> list[str]:
    """Bounded request for the most recent entries, after *cursor* if given."""
    argv = [journalctl, *BASE_ARGS, *build_filter_args(config)]
    if cursor is not None:
        argv += ["--after-cursor", cursor]
    argv += ["-n", str(config.backlog)]
    return argv


def follow_command(journalctl: str, config: StreamConfig, cursor: str | None) -> list[str]:
    """Continuous follow, resuming after *cursor* or starting at the tail."""
    argv = [journalctl, *BASE_ARGS]
    if cursor is not None:
        argv += ["--after-cursor", cursor]
    else:
        # without a cursor -f would first print the last 10 entries
        argv += ["-n", "0"]
    argv.append("-f")
    argv += build_filter_args(config)
    return argv


def format_command(argv: list[str]) -> str:
    return shlex.join(argv)
