import json
import os
import threading

import pytest

from hookbin.errors import CorruptLog, DurableWriteFailure, NamespaceNotFound, NamespaceUnavailable
from hookbin.namespaces import NamespaceRegistry
from hookbin.schemas import EventRecord, NameValue
from hookbin.storage import EventLog, NamespaceStore


def make_event(n, namespace="alpha", **extra):
    return EventRecord(
        id=f"evt-{n}",
        namespace=namespace,
        timestamp=f"2026-01-01T00:00:{n:02d}.000Z",
        method="POST",
        path=f"/hook/{namespace}?n={n}",
        full_url=f"http://example.test/hook/{namespace}?n={n}",
        query={"n": str(n)},
        query_strings=[NameValue(name="n", value=str(n))],
        headers={"host": "example.test"},
        body_raw=f"body {n}",
        size_bytes=6,
        **extra,
    )


class TestNamespaceStore:
    """Append, list, clear and reload"""

    def setup_method(self):
        self.registry = NamespaceRegistry(["alpha", "beta"])

    def _store(self, tmp_path):
        store = NamespaceStore(self.registry, str(tmp_path))
        store.load_all()
        return store

    def test_empty_namespace_lists_nothing(self, tmp_path):
        store = self._store(tmp_path)
        assert store.list("alpha") == []
        assert not os.path.exists(tmp_path / "alpha")

    def test_append_preserves_order_and_reloads(self, tmp_path):
        store = self._store(tmp_path)
        events = [make_event(i) for i in range(5)]
        for event in events:
            store.append(event)
        assert [e.id for e in store.list("alpha")] == [e.id for e in events]

        reloaded = self._store(tmp_path)
        assert reloaded.list("alpha") == events
        assert reloaded.list("beta") == []

    def test_log_is_one_json_object_per_line(self, tmp_path):
        store = self._store(tmp_path)
        store.append(make_event(1, body_json={"k": "v"}))
        store.append(make_event(2))
        with open(tmp_path / "alpha" / "events.jsonl", encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert len(lines) == 2
        first, second = (json.loads(line) for line in lines)
        assert first["bodyJson"] == {"k": "v"}
        assert first["queryStrings"] == [{"name": "n", "value": "1"}]
        assert "bodyJson" not in second
        assert "formValues" not in second

    def test_null_json_body_round_trips(self, tmp_path):
        store = self._store(tmp_path)
        store.append(make_event(1, body_json=None))
        reloaded = self._store(tmp_path)
        assert reloaded.list("alpha")[0].to_wire()["bodyJson"] is None

    def test_count_waits_for_in_flight_write(self, tmp_path):
        log = EventLog("alpha", str(tmp_path / "alpha"))
        log.append(make_event(1))
        counted = []
        reader = threading.Thread(target=lambda: counted.append(len(log)))

        with log._lock:
            reader.start()
            reader.join(timeout=0.2)
            assert reader.is_alive()
            assert counted == []
        reader.join(timeout=5)
        assert counted == [1]

    def test_namespaces_are_isolated(self, tmp_path):
        store = self._store(tmp_path)
        store.append(make_event(1, namespace="alpha"))
        store.append(make_event(2, namespace="beta"))
        store.clear("alpha")
        assert store.list("alpha") == []
        assert [e.id for e in store.list("beta")] == ["evt-2"]

    def test_clear_empties_cache_and_log(self, tmp_path):
        store = self._store(tmp_path)
        for i in range(3):
            store.append(make_event(i))
        store.clear("alpha")
        assert store.list("alpha") == []
        assert os.path.getsize(tmp_path / "alpha" / "events.jsonl") == 0

        store.append(make_event(9))
        assert [e.id for e in store.list("alpha")] == ["evt-9"]
        assert [e.id for e in self._store(tmp_path).list("alpha")] == ["evt-9"]

    def test_clear_without_log_file(self, tmp_path):
        store = self._store(tmp_path)
        store.clear("beta")
        assert not os.path.exists(tmp_path / "beta" / "events.jsonl")

    def test_unknown_namespace(self, tmp_path):
        store = self._store(tmp_path)
        with pytest.raises(NamespaceNotFound):
            store.list("gamma")
        with pytest.raises(NamespaceNotFound):
            store.clear("gamma")
        with pytest.raises(NamespaceNotFound):
            store.append(make_event(1, namespace="gamma"))
        assert not os.path.exists(tmp_path / "gamma")

    def test_failed_write_leaves_cache_untouched(self, tmp_path):
        # A plain file where the namespace directory should be
        (tmp_path / "alpha").write_text("in the way")
        store = self._store(tmp_path)
        with pytest.raises(DurableWriteFailure):
            store.append(make_event(1))
        assert store.list("alpha") == []

    def test_counts(self, tmp_path):
        store = self._store(tmp_path)
        store.append(make_event(1))
        store.append(make_event(2))
        assert store.count("alpha") == 2
        assert store.counts() == {"alpha": 2, "beta": 0}


class TestLogRecovery:
    """Loading logs written by an earlier process"""

    def _write_log(self, tmp_path, content: bytes):
        directory = tmp_path / "alpha"
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "events.jsonl").write_bytes(content)
        return directory / "events.jsonl"

    def _line(self, n):
        return (json.dumps(make_event(n).to_wire()) + "\n").encode("utf-8")

    def test_empty_file(self, tmp_path):
        self._write_log(tmp_path, b"")
        log = EventLog("alpha", str(tmp_path / "alpha"))
        assert log.load() == 0

    def test_blank_lines_are_skipped(self, tmp_path):
        self._write_log(tmp_path, self._line(1) + b"\n" + self._line(2))
        log = EventLog("alpha", str(tmp_path / "alpha"))
        assert log.load() == 2

    def test_trailing_partial_line_is_dropped(self, tmp_path):
        good = self._line(1) + self._line(2)
        path = self._write_log(tmp_path, good + self._line(3)[:25])
        log = EventLog("alpha", str(tmp_path / "alpha"))
        assert log.load() == 2
        # Cut back so the next append starts on a fresh line
        assert path.read_bytes() == good
        log.append(make_event(4))
        assert EventLog("alpha", str(tmp_path / "alpha")).load() == 3

    def test_complete_record_missing_newline_is_kept(self, tmp_path):
        path = self._write_log(tmp_path, self._line(1) + self._line(2).rstrip(b"\n"))
        log = EventLog("alpha", str(tmp_path / "alpha"))
        assert log.load() == 2
        assert path.read_bytes().endswith(b"\n")

    def test_corrupt_line_fails_loudly(self, tmp_path):
        self._write_log(tmp_path, self._line(1) + b"{broken\n" + self._line(2))
        log = EventLog("alpha", str(tmp_path / "alpha"))
        with pytest.raises(CorruptLog) as info:
            log.load()
        assert info.value.line_number == 2

    def test_corrupt_namespace_is_quarantined(self, tmp_path):
        self._write_log(tmp_path, b"not an event\n")
        store = NamespaceStore(NamespaceRegistry(["alpha", "beta"]), str(tmp_path))
        loaded = store.load_all()
        assert loaded == {"beta": 0}
        assert store.unavailable == ["alpha"]
        with pytest.raises(NamespaceUnavailable):
            store.list("alpha")
        with pytest.raises(NamespaceUnavailable):
            store.append(make_event(1))
        assert store.list("beta") == []
