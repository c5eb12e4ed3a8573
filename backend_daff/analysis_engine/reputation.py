"""
Reputation lookups consumed by the extractors.

Side-effect-free checks of a file hash, transaction addresses, a filetype and
network endpoints against known-good / known-bad sets. Data comes from the
built-in defaults or a JSON file (DAFF_REPUTATION_PATH); the lookup object is
immutable and safe to share between concurrent analyses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from backend_daff.core.exceptions import ConfigurationError
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DEFAULT_KNOWN_BAD_HASHES = frozenset({"bad_hash_1", "bad_hash_2"})
DEFAULT_KNOWN_GOOD_HASHES = frozenset({"good_hash_1", "good_hash_2"})
DEFAULT_BLACKLISTED_ADDRESSES = frozenset({"1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"})
DEFAULT_SUSPICIOUS_IPS = frozenset({"192.168.1.100", "10.0.0.50"})
DEFAULT_RISKY_FILETYPES = frozenset({"exe", "bat", "scr", "vbs"})
DEFAULT_SAFE_FILETYPES = frozenset({"txt", "pdf", "jpg", "png"})
# Ports below this are privileged
DEFAULT_PRIVILEGED_PORT_LIMIT = 1024


class HashReputation(str, Enum):
    KNOWN_GOOD = "known-good"
    KNOWN_BAD = "known-bad"
    UNKNOWN = "unknown"


class FiletypeRisk(str, Enum):
    RISKY = "risky"
    SAFE = "safe"
    UNKNOWN = "unknown"


def normalize_filetype(file_type: str) -> str:
    """'.EXE' / 'Exe' / 'exe' -> 'exe'."""
    return file_type.strip().lower().lstrip(".")


@dataclass(frozen=True)
class ReputationLookups:
    known_bad_hashes: frozenset[str] = DEFAULT_KNOWN_BAD_HASHES
    known_good_hashes: frozenset[str] = DEFAULT_KNOWN_GOOD_HASHES
    blacklisted_addresses: frozenset[str] = DEFAULT_BLACKLISTED_ADDRESSES
    suspicious_ips: frozenset[str] = DEFAULT_SUSPICIOUS_IPS
    risky_filetypes: frozenset[str] = DEFAULT_RISKY_FILETYPES
    safe_filetypes: frozenset[str] = DEFAULT_SAFE_FILETYPES
    privileged_port_limit: int = DEFAULT_PRIVILEGED_PORT_LIMIT

    def hash_reputation(self, file_hash: str) -> HashReputation:
        h = file_hash.strip()
        # Hex digests compare case-insensitively
        candidates = {h, h.lower()}
        if candidates & self.known_bad_hashes:
            return HashReputation.KNOWN_BAD
        if candidates & self.known_good_hashes:
            return HashReputation.KNOWN_GOOD
        return HashReputation.UNKNOWN

    def address_reputation(self, addresses: Iterable[str]) -> list[str]:
        """Return the blacklisted subset, in submission order."""
        return [a for a in addresses if a in self.blacklisted_addresses]

    def filetype_risk(self, file_type: str) -> FiletypeRisk:
        ft = normalize_filetype(file_type)
        if ft in self.risky_filetypes:
            return FiletypeRisk.RISKY
        if ft in self.safe_filetypes:
            return FiletypeRisk.SAFE
        return FiletypeRisk.UNKNOWN

    def is_suspicious_connection(self, ip: str, port: int) -> bool:
        return ip in self.suspicious_ips or port < self.privileged_port_limit


def default_reputation() -> ReputationLookups:
    return ReputationLookups()


def _string_set(data: dict[str, Any], key: str, default: frozenset[str], *, lower: bool = False) -> frozenset[str]:
    if key not in data:
        return default
    values = data[key]
    if not isinstance(values, list):
        raise ConfigurationError(f"reputation '{key}' must be a list")
    out = (str(v).strip() for v in values if v is not None and str(v).strip())
    if lower:
        return frozenset(normalize_filetype(v) for v in out)
    return frozenset(out)


def load_reputation(path: str | Path) -> ReputationLookups:
    """
    Load reputation data from JSON. Keys missing from the file keep their defaults.

    Raises ConfigurationError when the file is missing or malformed.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"reputation file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"reputation file unreadable: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"reputation file must contain a JSON object: {path}")

    try:
        port_limit = int(data.get("privileged_port_limit", DEFAULT_PRIVILEGED_PORT_LIMIT))
    except (TypeError, ValueError) as e:
        raise ConfigurationError("privileged_port_limit must be an integer") from e

    lookups = ReputationLookups(
        known_bad_hashes=_string_set(data, "known_bad_hashes", DEFAULT_KNOWN_BAD_HASHES),
        known_good_hashes=_string_set(data, "known_good_hashes", DEFAULT_KNOWN_GOOD_HASHES),
        blacklisted_addresses=_string_set(data, "blacklisted_addresses", DEFAULT_BLACKLISTED_ADDRESSES),
        suspicious_ips=_string_set(data, "suspicious_ips", DEFAULT_SUSPICIOUS_IPS),
        risky_filetypes=_string_set(data, "risky_filetypes", DEFAULT_RISKY_FILETYPES, lower=True),
        safe_filetypes=_string_set(data, "safe_filetypes", DEFAULT_SAFE_FILETYPES, lower=True),
        privileged_port_limit=port_limit,
    )
    logger.info(
        "reputation_loaded",
        path=str(path),
        known_bad_hashes=len(lookups.known_bad_hashes),
        known_good_hashes=len(lookups.known_good_hashes),
        blacklisted_addresses=len(lookups.blacklisted_addresses),
        suspicious_ips=len(lookups.suspicious_ips),
    )
    return lookups
