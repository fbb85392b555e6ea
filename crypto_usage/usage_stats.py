from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .aggregation import TreeNode
from .audit_loader import AuditEvent, iter_events
from .event_details import PUBLIC_KEY_PREFIX

NANOS_PER_SECOND = 1_000_000_000
STATS_COLUMNS = ["Algorithm", "Count", "Percentage"]
SECONDS_PER_YEAR = 31_557_600
SECONDS_PER_MONTH = 2_630_016


@dataclass(frozen=True)
class StatsRow:
    algorithm: str
    count: str
    percentage: str


@dataclass(frozen=True)
class PeriodLabels:
    start: str
    end: str
    duration: str


NOT_LOADED_PERIOD = PeriodLabels(start="Start: Not loaded", end="End: Not loaded", duration="Duration: Not loaded")


def time_range(events: Sequence[AuditEvent]) -> Optional[Tuple[int, int]]:
    """
    Earliest start and latest end over all events and their nested spans.

    Spans are not required to sit inside their parent's window; every timestamp counts.
    """
    min_start: Optional[int] = None
    max_end: Optional[int] = None
    for event in iter_events(events):
        min_start = event.start if min_start is None else min(min_start, event.start)
        max_end = event.end if max_end is None else max(max_end, event.end)
    if min_start is None or max_end is None:
        return None
    return min_start, max_end


def _algorithm_from_label(label: str) -> Optional[str]:
    start = label.find("[")
    end = label.find("]")
    if start == -1 or end == -1:
        return None
    for part in label[start + 1 : end].split(","):
        detail = part.strip()
        if detail and not detail.endswith("bits"):
            return detail
    return None


def algorithm_stats(tree: TreeNode) -> Dict[str, int]:
    """Sum the weight of every public-key operation under the algorithm shown in its label."""
    stats: Dict[str, int] = {}
    for node in tree.walk():
        if not node.name.startswith(PUBLIC_KEY_PREFIX):
            continue
        algorithm = _algorithm_from_label(node.name)
        if algorithm is not None:
            stats[algorithm] = stats.get(algorithm, 0) + node.value
    return stats


def rank_algorithms(stats: Dict[str, int]) -> List[Tuple[str, int]]:
    # Equal counts fall back to alphabetical order so the table is stable across runs.
    return sorted(stats.items(), key=lambda item: (-item[1], item[0]))


def round_percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(part / total * 100 + 0.5))


def stats_rows(tree: TreeNode) -> List[StatsRow]:
    stats = algorithm_stats(tree)
    total = sum(stats.values())
    return [
        StatsRow(algorithm=algorithm, count=str(count), percentage=f"{round_percentage(count, total)}%")
        for algorithm, count in rank_algorithms(stats)
    ]


def stats_frame(rows: Sequence[StatsRow]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=STATS_COLUMNS)
    return pd.DataFrame(
        [{"Algorithm": row.algorithm, "Count": int(row.count), "Percentage": row.percentage} for row in rows],
        columns=STATS_COLUMNS,
    )


def format_timestamp(total_nanos: int) -> str:
    """RFC 3339 in UTC; sub-second digits only when present, in groups of three."""
    seconds, nanos = divmod(total_nanos, NANOS_PER_SECOND)
    text = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    if nanos:
        if nanos % 1_000_000 == 0:
            text += f".{nanos // 1_000_000:03d}"
        elif nanos % 1_000 == 0:
            text += f".{nanos // 1_000:06d}"
        else:
            text += f".{nanos:09d}"
    return text + "Z"


def _plural(amount: int, unit: str) -> str:
    return f"{amount}{unit}s" if amount > 1 else f"{amount}{unit}"


def format_duration(nanos: int) -> str:
    """
    Compact duration such as `1day 2h 3m` or `250ms`.

    Years are 365.25 days and months 30.44 days; zero units are left out.
    """
    if nanos <= 0:
        return "0s"
    seconds, remainder = divmod(nanos, NANOS_PER_SECOND)
    years, seconds = divmod(seconds, SECONDS_PER_YEAR)
    months, seconds = divmod(seconds, SECONDS_PER_MONTH)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    millis, remainder = divmod(remainder, 1_000_000)
    micros, remainder = divmod(remainder, 1_000)

    parts = [_plural(amount, unit) for amount, unit in ((years, "year"), (months, "month"), (days, "day")) if amount]
    for amount, unit in (
        (hours, "h"),
        (minutes, "m"),
        (seconds, "s"),
        (millis, "ms"),
        (micros, "us"),
        (remainder, "ns"),
    ):
        if amount:
            parts.append(f"{amount}{unit}")
    return " ".join(parts)


def period_labels(events: Sequence[AuditEvent], boot_time: float) -> Optional[PeriodLabels]:
    """
    Display strings for the sampling period.

    Event ticks count nanoseconds from `boot_time` (whole seconds since the Unix epoch are used).
    """
    span = time_range(events)
    if span is None:
        return None
    start_ticks, end_ticks = span
    boot_nanos = int(boot_time) * NANOS_PER_SECOND
    return PeriodLabels(
        start=f"Start: {format_timestamp(boot_nanos + start_ticks)}",
        end=f"End: {format_timestamp(boot_nanos + end_ticks)}",
        duration=f"Duration: {format_duration(end_ticks - start_ticks)}",
    )
