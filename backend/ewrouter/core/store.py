"""
Persistence stores for the pattern cache and session history.

Both stores are acceleration paths, not sources of truth:
- Reads of a missing or corrupt file return an empty document/log
- Writes are read-modify-write followed by an atomic rename over the target
- Write failures are logged and reported as False, never raised

Concurrent invocations may race; the last atomic rename wins. A lost update
only costs a cache miss.
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

from ewrouter.core.logging import get_logger
from ewrouter.core.metrics import record_store_failure

logger = get_logger(__name__)

# Errors a store swallows; anything else is a programming error and propagates.
STORE_ERRORS = (OSError, ValueError, TypeError)


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write text to path via a temporary sibling file and os.replace.

    Readers never observe a partially written file.

    Raises:
        OSError if the directory cannot be created or the rename fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class DocumentStore(ABC):
    """Key/value JSON document with whole-document atomic replace."""

    name = "document"

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return the whole document ({} when missing or unreadable)."""

    @abstractmethod
    def replace(self, document: Dict[str, Any]) -> bool:
        """Atomically replace the whole document. Returns False on failure."""

    def get(self, key: str) -> Optional[Any]:
        """Get a single value, None on miss."""
        return self.load().get(key)

    def put(self, key: str, value: Any) -> bool:
        """Read-modify-write a single key."""
        document = self.load()
        document[key] = value
        return self.replace(document)


class LogStore(ABC):
    """Append-only log of JSON records."""

    name = "log"

    @abstractmethod
    def read(self) -> List[Dict[str, Any]]:
        """Return every readable record in append order ([] when missing)."""

    @abstractmethod
    def append(self, record: Dict[str, Any]) -> bool:
        """Append a record. Returns False on failure."""

    def tail(self, n: int) -> List[Dict[str, Any]]:
        """Return the last n records, oldest first."""
        if n <= 0:
            return []
        return self.read()[-n:]


class InMemoryDocumentStore(DocumentStore):
    """Document store held in process memory (tests, ephemeral sessions)."""

    name = "memory_document"

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self._document: Dict[str, Any] = deepcopy(document) if document else {}

    def load(self) -> Dict[str, Any]:
        return deepcopy(self._document)

    def replace(self, document: Dict[str, Any]) -> bool:
        self._document = deepcopy(document)
        return True


class InMemoryLogStore(LogStore):
    """Log store held in process memory."""

    name = "memory_log"

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self._records: List[Dict[str, Any]] = deepcopy(records) if records else []

    def read(self) -> List[Dict[str, Any]]:
        return deepcopy(self._records)

    def append(self, record: Dict[str, Any]) -> bool:
        self._records.append(deepcopy(record))
        return True


class JsonFileStore(DocumentStore):
    """
    JSON document persisted as a single file.

    Example layout:
        {"<signature>": {"classification": {...}, "hit_count": 2, "last_used": "..."},
         "__transitions__": {"DB/C": {"BE/R": 3}}}
    """

    def __init__(self, path: Path, name: str = "pattern_cache"):
        self.path = Path(path)
        self.name = name

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except STORE_ERRORS as e:
            record_store_failure(self.name, "read")
            logger.warning(
                "store_read_failed",
                store=self.name,
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
                message="Treating store as empty",
            )
            return {}

        if not isinstance(document, dict):
            record_store_failure(self.name, "read")
            logger.warning(
                "store_invalid_document",
                store=self.name,
                path=str(self.path),
                message="Store must hold a JSON object; treating as empty",
            )
            return {}

        return document

    def replace(self, document: Dict[str, Any]) -> bool:
        try:
            atomic_write_text(self.path, json.dumps(document, sort_keys=True))
        except STORE_ERRORS as e:
            record_store_failure(self.name, "write")
            logger.warning(
                "store_write_failed",
                store=self.name,
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True


class JsonlFileStore(LogStore):
    """
    Append-only JSONL log (one JSON record per line).

    Appends rewrite the file through atomic_write_text so a concurrent reader
    never sees a torn line. Unparsable lines are skipped on read.
    """

    def __init__(self, path: Path, name: str = "session_history"):
        self.path = Path(path)
        self.name = name

    def _load_lines(self) -> List[str]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read().splitlines()

    def _read_lines(self) -> List[str]:
        try:
            return self._load_lines()
        except STORE_ERRORS as e:
            record_store_failure(self.name, "read")
            logger.warning(
                "store_read_failed",
                store=self.name,
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
                message="Treating log as empty",
            )
            return []

    def read(self) -> List[Dict[str, Any]]:
        records = []
        skipped = 0
        for line in self._read_lines():
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                continue
            if isinstance(record, dict):
                records.append(record)
            else:
                skipped += 1

        if skipped:
            logger.warning(
                "store_corrupt_records_skipped",
                store=self.name,
                path=str(self.path),
                skipped=skipped,
            )
        return records

    def append(self, record: Dict[str, Any]) -> bool:
        try:
            line = json.dumps(record, sort_keys=True)
            # An unreadable log is left as is rather than rewritten as empty
            lines = [existing for existing in self._load_lines() if existing.strip()]
            lines.append(line)
            atomic_write_text(self.path, "\n".join(lines) + "\n")
        except STORE_ERRORS as e:
            record_store_failure(self.name, "write")
            logger.warning(
                "store_write_failed",
                store=self.name,
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True
