"""Unit tests for TableObserver and LiveQuery."""

import threading

from notesync.database.observer import LiveQuery, TableObserver


class TestTableObserver:
    """Tests for the per-table signal."""

    def test_invalidate_fires_only_that_table(self):
        observer = TableObserver()
        fired = []
        observer.subscribe("note", lambda: fired.append("note"))
        observer.subscribe("category", lambda: fired.append("category"))

        observer.invalidate("note")

        assert fired == ["note"]

    def test_unsubscribe(self):
        observer = TableObserver()
        fired = []
        unsubscribe = observer.subscribe("note", lambda: fired.append(1))

        unsubscribe()
        unsubscribe()
        observer.invalidate("note")

        assert fired == []
        assert observer.listener_count("note") == 0


class TestLiveQuery:
    """Tests for re-emitting query results."""

    def test_value_is_lazy(self):
        calls = []
        live = LiveQuery(TableObserver(), "note", lambda: calls.append(1) or len(calls))

        assert calls == []
        assert live.value == 1
        assert live.value == 1

    def test_emits_only_changed_results(self):
        observer = TableObserver()
        rows = ["a"]
        live = LiveQuery(observer, "note", lambda: list(rows))
        emissions = []
        live.observe(emissions.append)

        observer.invalidate("note")
        rows.append("b")
        observer.invalidate("note")

        assert emissions == [["a"], ["a", "b"]]

    def test_close_detaches_from_observer(self):
        observer = TableObserver()
        live = LiveQuery(observer, "note", lambda: 0)
        live.observe(lambda value: None)
        assert observer.listener_count("note") == 1

        live.close()

        assert observer.listener_count("note") == 0

    def test_slow_refresh_never_replaces_newer_result(self):
        observer = TableObserver()
        store = {"v": 0}
        slow_started = threading.Event()
        release_slow = threading.Event()

        def snapshot():
            value = store["v"]
            if threading.current_thread().name == "slow-refresh":
                slow_started.set()
                release_slow.wait(5)
            return value

        live = LiveQuery(observer, "note", snapshot)
        emissions = []
        live.observe(emissions.append)

        store["v"] = 1
        slow = threading.Thread(
            target=observer.invalidate, args=("note",), name="slow-refresh"
        )
        slow.start()
        assert slow_started.wait(5)

        store["v"] = 2
        observer.invalidate("note")
        release_slow.set()
        slow.join(5)

        assert emissions == [0, 2]
        assert live.value == 2

    def test_concurrent_writers_end_on_latest_result(self):
        observer = TableObserver()
        store = []
        store_lock = threading.Lock()
        live = LiveQuery(observer, "note", lambda: len(store))
        emissions = []
        live.observe(emissions.append)

        def writer():
            for _ in range(50):
                with store_lock:
                    store.append(1)
                observer.invalidate("note")

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert live.value == 200
        assert emissions[-1] == 200
        assert emissions == sorted(emissions)
