from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Tuple, Union

logger = logging.getLogger(__name__)

AttributeValue = Union[str, int, float, bool, None]

REQUIRED_FIELDS = ("context", "origin", "start", "end", "events")


class AuditFormatError(Exception):
    """Raised when an audit trace cannot be parsed into events."""


@dataclass(frozen=True)
class AuditEvent:
    """
    One recorded cryptographic operation.

    `start` and `end` are monotonic ticks (nanoseconds since boot). `spans` holds the
    operations that happened during this one, in recorded order.
    """

    context: str
    origin: str
    start: int
    end: int
    events: Dict[str, AttributeValue] = field(default_factory=dict)
    spans: Tuple["AuditEvent", ...] = ()

    @property
    def name(self) -> str:
        value = self.events.get("name")
        return value if isinstance(value, str) else "unknown"

    @classmethod
    def from_dict(cls, record: Any, *, location: str = "$") -> "AuditEvent":
        if not isinstance(record, dict):
            raise AuditFormatError(f"{location}: expected an object, got {type(record).__name__}")

        missing = [key for key in REQUIRED_FIELDS if key not in record]
        if missing:
            raise AuditFormatError(f"{location}: missing required fields: {', '.join(missing)}")

        context = record["context"]
        origin = record["origin"]
        if not isinstance(context, str):
            raise AuditFormatError(f"{location}.context: expected a string")
        if not isinstance(origin, str):
            raise AuditFormatError(f"{location}.origin: expected a string")

        start = _read_ticks(record["start"], f"{location}.start")
        end = _read_ticks(record["end"], f"{location}.end")

        attributes = record["events"]
        if not isinstance(attributes, dict):
            raise AuditFormatError(f"{location}.events: expected an object")

        raw_spans = record.get("spans", [])
        if raw_spans is None:
            raw_spans = []
        if not isinstance(raw_spans, list):
            raise AuditFormatError(f"{location}.spans: expected an array")

        spans = tuple(
            cls.from_dict(child, location=f"{location}.spans[{idx}]") for idx, child in enumerate(raw_spans)
        )
        return cls(
            context=context,
            origin=origin,
            start=start,
            end=end,
            events=dict(attributes),
            spans=spans,
        )


def _read_ticks(value: Any, location: str) -> int:
    # bool is an int subclass; a timestamp of `true` is a schema error.
    if isinstance(value, bool) or not isinstance(value, int):
        raise AuditFormatError(f"{location}: expected an unsigned integer")
    if value < 0:
        raise AuditFormatError(f"{location}: timestamps must not be negative")
    return value


def iter_events(events: Iterable[AuditEvent]) -> Iterator[AuditEvent]:
    """Yield every event and every nested span, parents before children."""
    for event in events:
        yield event
        yield from iter_events(event.spans)


def load_events_from_json(file_bytes: bytes) -> List[AuditEvent]:
    """
    Parse an audit trace: a JSON array of event objects, spans nested recursively.
    """
    try:
        payload = json.loads(file_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise AuditFormatError("Audit file is not valid UTF-8 text.") from exc
    except json.JSONDecodeError as exc:
        raise AuditFormatError(f"Audit file is not valid JSON: {exc.msg} (line {exc.lineno}).") from exc

    if not isinstance(payload, list):
        raise AuditFormatError("Audit file must contain a JSON array of events.")

    events = [AuditEvent.from_dict(record, location=f"$[{idx}]") for idx, record in enumerate(payload)]
    logger.info(
        "Parsed %d top-level audit events (%d including nested spans).",
        len(events),
        sum(1 for _ in iter_events(events)),
    )
    return events


def load_events_from_path(path: Union[str, pathlib.Path]) -> List[AuditEvent]:
    path = pathlib.Path(path)
    logger.info("Reading audit trace from %s", path)
    return load_events_from_json(path.read_bytes())
