"""Signature lookup seam between the validator and the signature store."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from pathlib import Path

import yaml

from cla_bot.exceptions import ConfigError
from cla_bot.models import ClaSignature, Contributor

# Given the external contributors of a pull request, return the signatures
# recorded for any of them.
SignatureLookup = Callable[[set[Contributor]], Awaitable[set[ClaSignature]]]


class StaticSignatureLookup:
    """In-memory signature lookup over a fixed list of signatures."""

    def __init__(self, signatures: Iterable[ClaSignature]) -> None:
        self._signatures = list(signatures)

    async def __call__(self, contributors: set[Contributor]) -> set[ClaSignature]:
        return {
            signature
            for signature in self._signatures
            if any(signature.matches(c) for c in contributors)
        }


def load_signatures(path: str | Path) -> list[ClaSignature]:
    """Load signatures from a YAML list of ``{signer, signed_at, version}``."""
    signatures_path = Path(path)
    if not signatures_path.exists():
        raise ConfigError(f"Signatures file not found: {signatures_path}")

    with open(signatures_path) as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise ConfigError(f"Expected a list of signatures in {signatures_path}")

    signatures: list[ClaSignature] = []
    for entry in data:
        if not isinstance(entry, dict) or "signer" not in entry:
            raise ConfigError(f"Signature entry without a signer: {entry!r}")
        signed_at = entry.get("signed_at") or datetime.now()
        signatures.append(
            ClaSignature(
                signer=str(entry["signer"]),
                signed_at=signed_at,
                version=str(entry.get("version", "1.0")),
            )
        )
    return signatures
