"""
Session history: append-only chain of classifications.

Each entry links to the previous one through prev_signature, approximating
the topic trajectory of a conversation. The history is read (never mutated)
by the progressive booster.
"""
from typing import List, Optional

from pydantic import ValidationError

from ewrouter.core.logging import get_logger
from ewrouter.core.store import LogStore
from ewrouter.models.classification import ClassificationResult, SessionHistoryEntry
from ewrouter.services.classification.pattern_cache import timestamp_iso

logger = get_logger(__name__)


class SessionHistory:
    """Session history on top of a LogStore."""

    def __init__(self, log: LogStore):
        self.log = log

    def _parse(self, records) -> List[SessionHistoryEntry]:
        entries = []
        for record in records:
            try:
                entries.append(SessionHistoryEntry.model_validate(record))
            except ValidationError:
                logger.debug("session_history_entry_skipped", record_keys=sorted(record))
        return entries

    def window(self, n: int) -> List[SessionHistoryEntry]:
        """
        Last n entries, oldest first. Unreadable history reads as empty.
        """
        if n <= 0:
            return []
        try:
            return self._parse(self.log.read())[-n:]
        except Exception as e:
            logger.warning(
                "session_history_read_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return []

    def last(self) -> Optional[SessionHistoryEntry]:
        entries = self.window(1)
        return entries[0] if entries else None

    def append(
        self,
        result: ClassificationResult,
        prev_signature: Optional[str] = None,
    ) -> Optional[SessionHistoryEntry]:
        """
        Append a classification to the chain.

        Args:
            result: Classification to record
            prev_signature: Signature of the previous entry (looked up when omitted)

        Returns:
            The appended entry, or None when persisting failed
        """
        if prev_signature is None:
            previous = self.last()
            prev_signature = previous.signature if previous else None

        entry = SessionHistoryEntry(
            signature=result.signature,
            query=result.query,
            classification=result.summary(),
            timestamp=timestamp_iso(),
            prev_signature=prev_signature,
        )

        try:
            success = self.log.append(entry.model_dump())
        except Exception as e:
            logger.warning(
                "session_history_write_failed",
                signature=result.signature,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if not success:
            logger.warning("session_history_write_failed", signature=result.signature)
            return None
        return entry
