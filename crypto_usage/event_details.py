"""Decoding of operation attributes into typed details and display labels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from .audit_loader import AuditEvent

PROTOCOL_VERSIONS = {772: "TLS 1.3", 771: "TLS 1.2"}
SIGNATURE_ALGORITHMS = {1027: "ecdsa_secp256r1_sha256", 2052: "rsa_pss_rsae_sha256"}
KEY_EXCHANGE_GROUPS = {23: "secp256r1", 4588: "X25519MLKEM768"}

HANDSHAKE_PREFIX = "tls::handshake_"
PUBLIC_KEY_PREFIX = "pk::"
SIGNATURE_OPERATIONS = ("tls::sign", "tls::verify")
KEY_EXCHANGE_OPERATION = "tls::key_exchange"


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass(frozen=True)
class HandshakeDetails:
    version: Optional[int] = None
    ciphersuite: Optional[Union[int, str]] = None

    def labels(self) -> List[str]:
        labels = []
        if self.version is not None:
            labels.append(PROTOCOL_VERSIONS.get(self.version, f"version {self.version}"))
        if self.ciphersuite is not None:
            labels.append(f"ciphersuite {self.ciphersuite}")
        return labels


@dataclass(frozen=True)
class SignatureDetails:
    scheme: Optional[int] = None

    def labels(self) -> List[str]:
        if self.scheme is None:
            return []
        return [SIGNATURE_ALGORITHMS.get(self.scheme, "unknown")]


@dataclass(frozen=True)
class KeyExchangeDetails:
    group: Optional[int] = None

    def labels(self) -> List[str]:
        if self.group is None:
            return []
        return [KEY_EXCHANGE_GROUPS.get(self.group, "unknown")]


@dataclass(frozen=True)
class PublicKeyDetails:
    algorithm: Optional[str] = None
    bits: Optional[Union[int, str]] = None

    def labels(self) -> List[str]:
        labels = []
        if self.algorithm is not None:
            labels.append(self.algorithm)
        if self.bits is not None:
            labels.append(f"{self.bits} bits")
        return labels


OperationDetails = Union[HandshakeDetails, SignatureDetails, KeyExchangeDetails, PublicKeyDetails]


def decode_details(name: str, attributes: Mapping[str, Any]) -> Optional[OperationDetails]:
    """
    Pick out the attributes that matter for the given operation name.

    Values of an unexpected type are dropped rather than reported; the label just shows less.
    """
    if name.startswith(HANDSHAKE_PREFIX):
        ciphersuite = attributes.get("tls::ciphersuite")
        if isinstance(ciphersuite, bool) or not isinstance(ciphersuite, (int, str)):
            ciphersuite = None
        return HandshakeDetails(
            version=_as_int(attributes.get("tls::protocol_version")),
            ciphersuite=ciphersuite,
        )
    if name in SIGNATURE_OPERATIONS:
        return SignatureDetails(scheme=_as_int(attributes.get("tls::signature_algorithm")))
    if name == KEY_EXCHANGE_OPERATION:
        return KeyExchangeDetails(group=_as_int(attributes.get("tls::group")))
    if name.startswith(PUBLIC_KEY_PREFIX):
        algorithm = attributes.get("pk::algorithm")
        bits = attributes.get("pk::bits")
        if isinstance(bits, bool) or not isinstance(bits, (int, str)):
            bits = None
        return PublicKeyDetails(
            algorithm=algorithm if isinstance(algorithm, str) else None,
            bits=bits,
        )
    return None


def format_label(event: AuditEvent) -> str:
    name = event.name
    details = decode_details(name, event.events)
    labels = details.labels() if details is not None else []
    if not labels:
        return name
    return f"{name} [{', '.join(labels)}]"
