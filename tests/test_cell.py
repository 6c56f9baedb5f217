"""Tests for CellScope/Cell and the storage backends."""

import json
import logging
import threading

import pytest

from hookfx import CellScope, JsonFileStorage, MemoryStorage, autorun, set_dispatcher


class CountingDefault:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class TestOpen:
    def test_empty_storage_uses_default_once(self):
        storage = MemoryStorage()
        gen = CountingDefault(4)
        cell = CellScope(storage).open("k", gen)
        assert gen.calls == 1
        assert cell.read() == 4
        assert cell.initialized
        assert storage.get("k") == "4"

    def test_stored_value_wins(self):
        gen = CountingDefault(4)
        cell = CellScope(MemoryStorage({"k": "7"})).open("k", gen)
        assert gen.calls == 0
        assert cell.read() == 7

    def test_stored_zero_is_a_value(self):
        gen = CountingDefault(4)
        cell = CellScope(MemoryStorage({"k": "0"})).open("k", gen)
        assert cell.read() == 0
        assert gen.calls == 0

    def test_unparseable_value_falls_back(self, caplog):
        storage = MemoryStorage({"k": "seven"})
        gen = CountingDefault(3)
        with caplog.at_level(logging.INFO, logger="hookfx.cell"):
            cell = CellScope(storage).open("k", gen)
        assert cell.read() == 3
        assert gen.calls == 1
        assert storage.get("k") == "3"
        assert "unreadable stored value" in caplog.text

    def test_reopen_in_same_scope_returns_same_cell(self):
        storage = MemoryStorage()
        scope = CellScope(storage)
        gen = CountingDefault(5)
        a = scope.open("k", gen)
        a.write(9)
        b = scope.open("k", gen)
        assert a is b
        assert b.read() == 9
        assert gen.calls == 1
        assert "k" in scope

    def test_new_scope_reads_persisted_default(self):
        storage = MemoryStorage()
        first = CountingDefault(6)
        with CellScope(storage) as scope:
            assert scope.open("counter-count", first).read() == 6

        second = CountingDefault(1)
        assert CellScope(storage).open("counter-count", second).read() == 6
        assert second.calls == 0

    def test_failing_default_leaves_cell_unresolved(self):
        storage = MemoryStorage()
        scope = CellScope(storage)

        def boom():
            raise RuntimeError("no entropy")

        with pytest.raises(RuntimeError):
            scope.open("k", boom)
        assert storage.get("k") is None
        assert scope.open("k", lambda: 2).read() == 2

    def test_custom_codec(self):
        storage = MemoryStorage({"flags": '["a"]'})
        cell = CellScope(storage).open("flags", list, parse=json.loads, format=json.dumps)
        assert cell.read() == ["a"]
        cell.write(["a", "b"])
        assert storage.get("flags") == '["a", "b"]'


class TestWrite:
    def test_write_mirrors_to_storage(self):
        storage = MemoryStorage()
        cell = CellScope(storage).open("k", lambda: 1)
        cell.write(2)
        assert cell.read() == 2
        assert storage.get("k") == "2"

    def test_each_write_sets_storage_once(self):
        sets = []

        class Recording(MemoryStorage):
            def set(self, key, value):
                sets.append((key, value))
                super().set(key, value)

        cell = CellScope(Recording()).open("k", lambda: 1)
        cell.write(1)
        cell.write(2)
        assert sets == [("k", "1"), ("k", "1"), ("k", "2")]

    def test_update(self):
        storage = MemoryStorage({"k": "5"})
        cell = CellScope(storage).open("k", lambda: 0)
        assert cell.update(lambda n: n - 1) == 4
        assert storage.get("k") == "4"

    def test_concurrent_updates_are_serialized(self):
        storage = MemoryStorage({"k": "0"})
        cell = CellScope(storage).open("k", lambda: 0)

        def bump():
            for _ in range(200):
                cell.update(lambda n: n + 1)

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert cell.read() == 800
        assert storage.get("k") == "800"

    def test_worker_thread_updates_with_dispatcher(self):
        pending = []
        set_dispatcher(pending.append)
        try:
            storage = MemoryStorage({"k": "0"})
            cell = CellScope(storage).open("k", lambda: 0)
            log = []
            autorun(lambda: log.append(cell.read()))

            def bump_twice():
                cell.update(lambda n: n + 1)
                cell.update(lambda n: n + 1)

            t = threading.Thread(target=bump_twice)
            t.start()
            t.join()

            assert cell.read() == 2
            assert storage.get("k") == "2"
            assert log == [0]  # observers wait for the control thread

            for fn in pending:
                fn()
            assert log[-1] == 2
        finally:
            set_dispatcher(None)

    def test_read_after_write_on_worker_thread(self):
        set_dispatcher(lambda fn: None)
        try:
            cell = CellScope(MemoryStorage()).open("k", lambda: 1)
            seen = []

            def write_then_read():
                cell.write(5)
                seen.append(cell.read())

            t = threading.Thread(target=write_then_read)
            t.start()
            t.join()
            assert seen == [5]
        finally:
            set_dispatcher(None)

    def test_failed_storage_write_keeps_memory(self):
        class Failing(MemoryStorage):
            fail = False

            def set(self, key, value):
                if self.fail:
                    raise OSError("disk full")
                super().set(key, value)

        storage = Failing()
        cell = CellScope(storage).open("k", lambda: 1)
        storage.fail = True
        with pytest.raises(OSError):
            cell.write(2)
        with pytest.raises(OSError):
            cell.update(lambda n: n + 10)
        assert cell.read() == 1
        assert storage.get("k") == "1"

    def test_reactions_follow_cell(self):
        cell = CellScope(MemoryStorage()).open("k", lambda: 1)
        log = []
        autorun(lambda: log.append(cell.read()))
        cell.update(lambda n: n + 1)
        assert log == [1, 2]


class TestJsonFileStorage:
    def test_survives_restart(self, tmp_path):
        path = tmp_path / "state" / "cells.json"
        gen = CountingDefault(8)
        CellScope(JsonFileStorage(path)).open("field-count", gen)

        again = CountingDefault(2)
        cell = CellScope(JsonFileStorage(path)).open("field-count", again)
        assert cell.read() == 8
        assert again.calls == 0
        assert json.loads(path.read_text("utf-8")) == {"field-count": "8"}

    def test_missing_file_is_empty(self, tmp_path):
        s = JsonFileStorage(tmp_path / "none.json")
        assert s.get("k") is None

    def test_corrupt_file_starts_empty(self, tmp_path, caplog):
        path = tmp_path / "cells.json"
        path.write_text("{not json", "utf-8")
        with caplog.at_level(logging.WARNING, logger="hookfx.storage"):
            s = JsonFileStorage(path)
        assert s.get("k") is None
        assert "starting empty" in caplog.text
        s.set("k", "1")
        assert JsonFileStorage(path).get("k") == "1"

    def test_ignores_non_string_values(self, tmp_path):
        path = tmp_path / "cells.json"
        path.write_text(json.dumps({"a": "1", "b": 2}), "utf-8")
        s = JsonFileStorage(path)
        assert s.get("a") == "1"
        assert s.get("b") is None
