"""Content identity and admission decisions.

The ledger answers two questions about a candidate document: what is its
identity (a SHA-256 over the exact text that will be embedded), and should
it be embedded at all. It never writes; the insert happens only after a
successful embed.
"""

import hashlib
import logging
from dataclasses import dataclass

from vecsync.constants import MIN_CONTENT_LENGTH
from vecsync.store.base import VectorStore

logger = logging.getLogger(__name__)

REASON_TOO_SHORT = "too_short"
REASON_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Verdict:
    """Outcome of ``ContentLedger.admit``."""

    checksum: str
    accepted: bool
    reason: str | None = None
    existing_id: str | None = None


def compare_versions(a: str | None, b: str | None) -> int:
    """Compare dotted numeric versions; missing parts count as zero.

    Returns:
        int: -1 if a < b, 0 if equal, 1 if a > b
    """
    parts_a = [int(p) if p.isdigit() else 0 for p in (a or "0.0.0").split(".")]
    parts_b = [int(p) if p.isdigit() else 0 for p in (b or "0.0.0").split(".")]
    width = max(len(parts_a), len(parts_b))
    parts_a += [0] * (width - len(parts_a))
    parts_b += [0] * (width - len(parts_b))
    return (parts_a > parts_b) - (parts_a < parts_b)


class ContentLedger:
    """Checksum identity plus skip/accept decisions against a store."""

    def __init__(self, store: VectorStore, min_length: int = MIN_CONTENT_LENGTH) -> None:
        self.store = store
        self.min_length = min_length

    @staticmethod
    def identify(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def admit(self, content: str, checksum: str | None = None) -> Verdict:
        """Decide whether ``content`` should be embedded.

        Args:
            content: The exact text that would be embedded
            checksum: Precomputed identity, if the caller already has it

        Returns:
            Verdict: accepted, or skipped with reason "too_short" or
                "duplicate" (the latter carrying the existing document id)
        """
        checksum = checksum or self.identify(content)
        if len(content.strip()) < self.min_length:
            return Verdict(checksum, accepted=False, reason=REASON_TOO_SHORT)

        existing_id = self.store.get_by_checksum(checksum)
        if existing_id is not None:
            return Verdict(checksum, accepted=False, reason=REASON_DUPLICATE, existing_id=existing_id)

        return Verdict(checksum, accepted=True)
