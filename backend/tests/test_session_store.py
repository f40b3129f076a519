import threading
import unittest
from datetime import timedelta

from controller_relay.services.session_store import SessionStatus, SessionStore
from tests.clock import FakeClock


class SessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.store = SessionStore(clock=self.clock)

    def test_fresh_connections_get_distinct_sequential_ids(self) -> None:
        issued = [self.store.resolve_or_create(f"c{index}") for index in range(1, 6)]

        self.assertEqual(
            issued,
            [("player_1", False), ("player_2", False), ("player_3", False), ("player_4", False), ("player_5", False)],
        )
        self.assertEqual(len({player_id for player_id, _ in issued}), 5)

    def test_repeat_request_on_same_connection_is_idempotent(self) -> None:
        first = self.store.resolve_or_create("c1")
        second = self.store.resolve_or_create("c1")

        self.assertEqual(first, second)
        self.assertEqual(len(self.store), 1)

    def test_repeat_request_keeps_existing_binding_even_with_other_requested_id(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.resolve_or_create("c2")

        self.assertEqual(self.store.resolve_or_create("c1", "player_2"), ("player_1", False))
        self.assertEqual(self.store.session_for("c2"), "player_2")

    def test_reconnect_rebinds_known_player(self) -> None:
        player_id, _ = self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")

        result = self.store.resolve_or_create("c2", player_id)

        self.assertEqual(result, (player_id, True))
        self.assertEqual(self.store.session_for("c2"), player_id)
        self.assertIsNone(self.store.session_for("c1"))
        lookup = self.store.lookup(player_id)
        self.assertEqual(lookup.status, SessionStatus.BOUND)
        assert lookup.session is not None
        self.assertEqual(lookup.session.current_connection_id, "c2")
        self.assertEqual(lookup.session.session_count, 2)

    def test_repeat_request_after_reconnect_reports_reconnection(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")
        self.store.resolve_or_create("c2", "player_1")

        self.assertEqual(self.store.resolve_or_create("c2", "player_1"), ("player_1", True))

    def test_unknown_requested_id_gets_fresh_identity(self) -> None:
        self.assertEqual(self.store.resolve_or_create("c1", "player_99"), ("player_1", False))
        self.assertEqual(self.store.lookup("player_99").status, SessionStatus.UNKNOWN)

    def test_blank_requested_id_is_treated_as_absent(self) -> None:
        self.assertEqual(self.store.resolve_or_create("c1", "   "), ("player_1", False))

    def test_disconnect_keeps_session_idle(self) -> None:
        self.store.resolve_or_create("c1")

        self.assertEqual(self.store.mark_disconnected("c1"), "player_1")

        self.assertIsNone(self.store.session_for("c1"))
        self.assertEqual(self.store.lookup("player_1").status, SessionStatus.IDLE)
        self.assertEqual(self.store.idle_count(), 1)

    def test_disconnect_of_unknown_connection_is_noop(self) -> None:
        self.assertIsNone(self.store.mark_disconnected("missing"))
        self.assertEqual(len(self.store), 0)

    def test_last_claim_wins_and_superseded_disconnect_keeps_binding(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")
        self.store.resolve_or_create("c2", "player_1")
        self.store.resolve_or_create("c3", "player_1")

        self.assertEqual(self.store.session_for("c2"), "player_1")
        self.assertEqual(self.store.session_for("c3"), "player_1")

        self.assertEqual(self.store.mark_disconnected("c2"), "player_1")

        lookup = self.store.lookup("player_1")
        self.assertEqual(lookup.status, SessionStatus.BOUND)
        assert lookup.session is not None
        self.assertEqual(lookup.session.current_connection_id, "c3")

    def test_record_activity_refreshes_last_used(self) -> None:
        self.store.resolve_or_create("c1")
        later = self.clock.advance(minutes=3)

        self.assertTrue(self.store.record_activity("player_1"))

        session = self.store.lookup("player_1").session
        assert session is not None
        self.assertEqual(session.last_used, later)

    def test_record_activity_on_evicted_session_is_dropped(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")
        self.clock.advance(minutes=11)
        self.store.evict_idle_since(timedelta(minutes=10))

        self.assertFalse(self.store.record_activity("player_1"))
        self.assertEqual(self.store.lookup("player_1").status, SessionStatus.UNKNOWN)
        self.assertEqual(len(self.store), 0)

    def test_evicts_only_idle_sessions_past_threshold(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.resolve_or_create("c2")
        self.store.resolve_or_create("c3")
        self.store.mark_disconnected("c1")
        self.clock.advance(minutes=8)
        self.store.mark_disconnected("c2")
        now = self.clock.advance(minutes=5)

        evicted = self.store.evict_idle_since(timedelta(minutes=10), now)

        self.assertEqual(evicted, ["player_1"])
        self.assertEqual(self.store.lookup("player_1").status, SessionStatus.UNKNOWN)
        self.assertEqual(self.store.lookup("player_2").status, SessionStatus.IDLE)
        self.assertEqual(self.store.lookup("player_3").status, SessionStatus.BOUND)

    def test_bound_session_is_never_evicted(self) -> None:
        self.store.resolve_or_create("c1")
        now = self.clock.advance(days=30)

        self.assertEqual(self.store.evict_idle_since(timedelta(minutes=10), now), [])
        self.assertEqual(self.store.session_for("c1"), "player_1")

    def test_eviction_drops_stale_reverse_entries(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")
        self.store.resolve_or_create("c2", "player_1")
        self.store.resolve_or_create("c3", "player_1")
        self.store.mark_disconnected("c3")
        now = self.clock.advance(minutes=20)

        self.assertEqual(self.store.evict_idle_since(timedelta(minutes=10), now), ["player_1"])
        self.assertIsNone(self.store.session_for("c2"))

    def test_expired_reconnect_gets_new_identity_and_ids_are_not_reused(self) -> None:
        self.store.resolve_or_create("c1")
        self.store.mark_disconnected("c1")
        now = self.clock.advance(minutes=20)
        self.store.evict_idle_since(timedelta(minutes=10), now)

        self.assertEqual(self.store.resolve_or_create("c2", "player_1"), ("player_2", False))

    def test_lookup_returns_snapshot(self) -> None:
        self.store.resolve_or_create("c1")
        session = self.store.lookup("player_1").session
        assert session is not None
        session.current_connection_id = None

        self.assertEqual(self.store.lookup("player_1").status, SessionStatus.BOUND)

    def test_custom_prefix(self) -> None:
        store = SessionStore(player_id_prefix="pad-", clock=self.clock)
        self.assertEqual(store.resolve_or_create("c1"), ("pad-1", False))



class SessionStoreConcurrencyTests(unittest.TestCase):
    WORKERS = 8
    CONNECTIONS_PER_WORKER = 300

    def test_parallel_binds_disconnects_and_sweeps_stay_consistent(self) -> None:
        clock = FakeClock()
        store = SessionStore(clock=clock)
        sweep_at = clock.now + timedelta(minutes=1)
        start = threading.Barrier(self.WORKERS + 1)
        workers_done = threading.Event()
        bound: list[list[tuple[str, str]]] = [[] for _ in range(self.WORKERS)]
        disconnected: list[list[tuple[str, str]]] = [[] for _ in range(self.WORKERS)]
        evicted: list[str] = []
        repeat_mismatches: list[str] = []

        def worker(index: int) -> None:
            start.wait()
            for number in range(self.CONNECTIONS_PER_WORKER):
                connection_id = f"w{index}-c{number}"
                player_id, _ = store.resolve_or_create(connection_id)
                if store.resolve_or_create(connection_id) != (player_id, False):
                    repeat_mismatches.append(connection_id)
                if number % 3 == 0:
                    store.mark_disconnected(connection_id)
                    disconnected[index].append((connection_id, player_id))
                else:
                    bound[index].append((connection_id, player_id))

        def sweeper() -> None:
            start.wait()
            while not workers_done.is_set():
                evicted.extend(store.evict_idle_since(timedelta(0), sweep_at))

        threads = [threading.Thread(target=worker, args=(index,)) for index in range(self.WORKERS)]
        sweep_thread = threading.Thread(target=sweeper)
        sweep_thread.start()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        workers_done.set()
        sweep_thread.join()
        evicted.extend(store.evict_idle_since(timedelta(0), sweep_at))

        self.assertEqual(repeat_mismatches, [])
        bound_pairs = [pair for pairs in bound for pair in pairs]
        disconnected_pairs = [pair for pairs in disconnected for pair in pairs]
        issued = [player_id for _, player_id in bound_pairs + disconnected_pairs]
        self.assertEqual(len(issued), self.WORKERS * self.CONNECTIONS_PER_WORKER)
        self.assertEqual(len(set(issued)), len(issued))

        for connection_id, player_id in bound_pairs:
            self.assertEqual(store.session_for(connection_id), player_id)
            lookup = store.lookup(player_id)
            self.assertEqual(lookup.status, SessionStatus.BOUND)
            assert lookup.session is not None
            self.assertEqual(lookup.session.current_connection_id, connection_id)

        for connection_id, _ in disconnected_pairs:
            self.assertIsNone(store.session_for(connection_id))

        self.assertEqual(sorted(evicted), sorted(player_id for _, player_id in disconnected_pairs))
        self.assertEqual(len(store), len(bound_pairs))
        self.assertEqual(store.idle_count(), 0)


if __name__ == "__main__":
    unittest.main()
