"""
Per-namespace durable event log with an in-memory mirror.

Each namespace owns ``<data_dir>/<namespace>/events.jsonl``: one JSON
encoded EventRecord per line, in arrival order. The file is the source of
truth on restart; the cache holds everything recorded since.
"""
import json
import logging
import os
import threading
from typing import Dict, List, Optional

from pydantic import ValidationError

from hookbin.errors import CorruptLog, DurableWriteFailure, NamespaceNotFound, NamespaceUnavailable
from hookbin.namespaces import NamespaceRegistry
from hookbin.schemas import EventRecord

logger = logging.getLogger(__name__)

LOG_FILENAME = "events.jsonl"


def serialize_event(event: EventRecord) -> str:
    return json.dumps(event.to_wire(), separators=(",", ":")) + "\n"


class EventLog:
    """Append-only log and ordered cache for a single namespace."""

    def __init__(self, namespace: str, directory: str, fsync: bool = False):
        self.namespace = namespace
        self.directory = directory
        self.path = os.path.join(directory, LOG_FILENAME)
        self._fsync = fsync
        self._lock = threading.Lock()
        self._events: List[EventRecord] = []

    def load(self) -> int:
        """
        Rebuild the cache from disk. Returns the number of events loaded.

        A trailing line without its newline is the remains of an interrupted
        append: it is dropped and the file cut back to the last full record.
        Any complete line that does not decode raises CorruptLog.
        """
        with self._lock:
            self._events = []
            if not os.path.exists(self.path):
                return 0

            with open(self.path, "rb") as f:
                content = f.read()

            events: List[EventRecord] = []
            offset = 0
            line_number = 0
            while offset < len(content):
                line_number += 1
                end = content.find(b"\n", offset)
                if end == -1:
                    self._repair_tail(content[offset:], offset, events)
                    break
                line = content[offset:end]
                offset = end + 1
                if not line.strip():
                    continue
                try:
                    events.append(EventRecord.model_validate_json(line))
                except ValidationError as e:
                    raise CorruptLog(self.path, line_number, str(e).splitlines()[0]) from e

            self._events = events
            return len(events)

    def _repair_tail(self, tail: bytes, offset: int, events: List[EventRecord]):
        if tail.strip():
            try:
                events.append(EventRecord.model_validate_json(tail))
            except ValidationError:
                logger.warning(
                    "Discarding incomplete trailing record in %s (%d bytes)", self.path, len(tail)
                )
                with open(self.path, "r+b") as f:
                    f.truncate(offset)
                return
            # Complete record that only lost its newline
            with open(self.path, "ab") as f:
                f.write(b"\n")
        else:
            with open(self.path, "r+b") as f:
                f.truncate(offset)

    def append(self, event: EventRecord):
        """Durably write the event, then add it to the cache."""
        line = serialize_event(event)
        with self._lock:
            size_before: Optional[int] = None
            try:
                os.makedirs(self.directory, exist_ok=True)
                size_before = os.path.getsize(self.path) if os.path.exists(self.path) else 0
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    if self._fsync:
                        os.fsync(f.fileno())
            except OSError as e:
                self._rollback(size_before)
                raise DurableWriteFailure(self.namespace, e) from e
            self._events.append(event)

    def _rollback(self, size_before: Optional[int]):
        if size_before is None:
            return
        try:
            with open(self.path, "r+b") as f:
                f.truncate(size_before)
        except OSError as e:
            logger.error("Could not roll back partial write to %s: %s", self.path, e)

    def list(self) -> List[EventRecord]:
        with self._lock:
            return list(self._events)

    def clear(self):
        with self._lock:
            if os.path.exists(self.path):
                try:
                    with open(self.path, "w", encoding="utf-8"):
                        pass
                except OSError as e:
                    raise DurableWriteFailure(self.namespace, e) from e
            self._events = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class NamespaceStore:
    """Owns one EventLog per configured namespace; the only writer of either."""

    def __init__(self, registry: NamespaceRegistry, data_dir: str, fsync: bool = False):
        self.registry = registry
        self.data_dir = data_dir
        self._logs: Dict[str, EventLog] = {
            ns: EventLog(ns, os.path.join(data_dir, ns), fsync=fsync) for ns in registry
        }
        self._unavailable: Dict[str, str] = {}

    def load(self, namespace: str) -> int:
        log = self._logs[self.registry.require(namespace)]
        try:
            count = log.load()
        except CorruptLog as e:
            self._unavailable[namespace] = str(e)
            raise
        self._unavailable.pop(namespace, None)
        return count

    def load_all(self) -> Dict[str, int]:
        """
        Load every namespace. A corrupt log quarantines its namespace only;
        the others keep serving.
        """
        loaded = {}
        for ns in self.registry:
            try:
                loaded[ns] = self.load(ns)
            except CorruptLog as e:
                logger.error("Refusing to serve namespace %r, corrupt log: %s", ns, e)
        return loaded

    def _log_for(self, namespace: str) -> EventLog:
        if not self.registry.is_valid(namespace):
            raise NamespaceNotFound(namespace)
        if namespace in self._unavailable:
            raise NamespaceUnavailable(namespace)
        return self._logs[namespace]

    def check(self, namespace: str) -> str:
        self._log_for(namespace)
        return namespace

    def append(self, event: EventRecord):
        self._log_for(event.namespace).append(event)

    def list(self, namespace: str) -> List[EventRecord]:
        return self._log_for(namespace).list()

    def clear(self, namespace: str):
        self._log_for(namespace).clear()

    def count(self, namespace: str) -> int:
        return len(self._log_for(namespace))

    def counts(self) -> Dict[str, int]:
        return {ns: len(log) for ns, log in self._logs.items() if ns not in self._unavailable}

    @property
    def unavailable(self) -> List[str]:
        return [ns for ns in self.registry if ns in self._unavailable]
