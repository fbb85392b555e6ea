"""Pytest configuration and fixtures."""

import random
import sys
from pathlib import Path

import pytest

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from crypto_usage.audit_loader import AuditEvent  # noqa: E402

OPERATION_NAMES = [
    ("tls::handshake_client", {"tls::protocol_version": 772, "tls::ciphersuite": 4865}),
    ("tls::handshake_server", {"tls::protocol_version": 771}),
    ("tls::sign", {"tls::signature_algorithm": 2052}),
    ("tls::verify", {"tls::signature_algorithm": 1027}),
    ("tls::key_exchange", {"tls::group": 4588}),
    ("pk::sign", {"pk::algorithm": "rsa", "pk::bits": 2048}),
    ("pk::verify", {"pk::algorithm": "ecdsa"}),
    ("pk::generate", {"pk::algorithm": "mldsa", "pk::bits": 65}),
    ("cipher::encrypt", {}),
]


def make_event(name, context="p1", start=0, end=10, spans=(), **attributes):
    events = {"name": name}
    events.update(attributes)
    return AuditEvent(context=context, origin="test", start=start, end=end, events=events, spans=tuple(spans))


def event_record(name, context="p1", start=0, end=10, spans=None, **attributes):
    events = {"name": name}
    events.update(attributes)
    return {
        "context": context,
        "origin": "test",
        "start": start,
        "end": end,
        "events": events,
        "spans": spans or [],
    }


def _random_event(rng, depth, clock):
    name, attributes = rng.choice(OPERATION_NAMES)
    start = clock + rng.randint(0, 50)
    span_count = rng.randint(0, 3) if depth < 4 else 0
    spans = [_random_event(rng, depth + 1, start) for _ in range(span_count)]
    end = max([start + rng.randint(1, 100)] + [span.end for span in spans])
    return AuditEvent(
        context=rng.choice(["p1", "p2", "p3"]),
        origin="random",
        start=start,
        end=end,
        events={"name": name, **attributes},
        spans=tuple(spans),
    )


def make_forest(seed, size=None):
    """Deterministic pseudo-random event forest."""
    rng = random.Random(seed)
    count = size if size is not None else rng.randint(1, 12)
    return [_random_event(rng, 0, rng.randint(0, 1000)) for _ in range(count)]


@pytest.fixture
def handshake_record():
    return event_record(
        "tls::handshake_client",
        start=100,
        end=500,
        spans=[event_record("tls::key_exchange", start=150, end=200, **{"tls::group": 23})],
    )


@pytest.fixture
def sample_events():
    return [
        make_event(
            "tls::handshake_client",
            context="p1",
            start=100,
            end=500,
            spans=[
                make_event("tls::key_exchange", context="p1", start=150, end=200, **{"tls::group": 23}),
                make_event("pk::sign", context="p1", start=210, end=260, **{"pk::algorithm": "rsa", "pk::bits": 2048}),
            ],
            **{"tls::protocol_version": 772},
        ),
        make_event("pk::verify", context="p2", start=50, end=80, **{"pk::algorithm": "ecdsa"}),
        make_event("pk::sign", context="p1", start=600, end=700, **{"pk::algorithm": "rsa"}),
    ]
