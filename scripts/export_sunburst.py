#!/usr/bin/env python
"""
Export a sunburst layout of an audit trace as JSON, without starting the GUI.

Usage:
    python scripts/export_sunburst.py --input audit.json --output runtime/sunburst.json

The resulting JSON contains the positioned segments, the algorithm table, and the time range.
"""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from typing import Any, Dict, Optional

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from crypto_usage.audit_loader import AuditFormatError, load_events_from_path  # noqa: E402  pylint: disable=wrong-import-position
from crypto_usage.sunburst_layout import PaintInstruction, paint_instructions  # noqa: E402  pylint: disable=wrong-import-position
from crypto_usage.sunburst_state import SunburstController  # noqa: E402  pylint: disable=wrong-import-position
from crypto_usage.usage_stats import stats_frame, time_range  # noqa: E402  pylint: disable=wrong-import-position


def _hex(colour) -> str:
    return "#" + "".join(f"{round(channel * 255):02x}" for channel in colour)


def _instruction_payload(instruction: PaintInstruction) -> Dict[str, Any]:
    return {
        "label": instruction.label,
        "start_angle": instruction.start_angle,
        "end_angle": instruction.end_angle,
        "inner_radius": instruction.inner_radius,
        "outer_radius": instruction.outer_radius,
        "fill": _hex(instruction.fill),
    }


def build_payload(input_path: pathlib.Path, size: float, boot_time: Optional[float]) -> Dict[str, Any]:
    events = load_events_from_path(input_path)
    controller = SunburstController(size, size)
    controller.load_events(events)

    segments = [
        {
            "name": segment.node.name,
            "path": list(segment.path),
            "depth": segment.depth,
            "value": segment.node.value,
            **_instruction_payload(instruction),
        }
        for segment, instruction in zip(
            controller.segments, paint_instructions(controller.segments, controller.center)
        )
    ]
    span = time_range(events)
    payload: Dict[str, Any] = {
        "size": size,
        "center": list(controller.center),
        "total": controller.tree.value if controller.tree else 0,
        "segments": segments,
        "stats": stats_frame(controller.stats_rows()).to_dict(orient="records"),
        "time_range": list(span) if span else None,
    }
    if boot_time is not None:
        labels = controller.period_labels(boot_time)
        payload["period"] = (
            {"start": labels.start, "end": labels.end, "duration": labels.duration} if labels else None
        )
    return payload


def export_sunburst(input_path: pathlib.Path, output_path: pathlib.Path, size: float, boot_time: Optional[float]) -> None:
    try:
        payload = build_payload(input_path, size, boot_time)
    except AuditFormatError as exc:
        raise SystemExit(f"Failed to load audit file: {exc}") from exc
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote {len(payload['segments'])} segments to {output_path}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export the sunburst layout of an audit trace as JSON.")
    parser.add_argument("--input", required=True, type=pathlib.Path, help="Path to the audit trace (.json).")
    parser.add_argument("--output", required=True, type=pathlib.Path, help="Destination JSON file.")
    parser.add_argument("--size", type=float, default=700.0, help="Square viewport size in pixels (default: %(default)s).")
    parser.add_argument(
        "--boot-time",
        type=float,
        default=None,
        help="Boot time in seconds since the Unix epoch; adds formatted period labels when given.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    export_sunburst(args.input, args.output, args.size, args.boot_time)


if __name__ == "__main__":
    main()
