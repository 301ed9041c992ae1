from __future__ import annotations

import random
import unittest
from datetime import datetime, timezone
from typing import Any, Callable

from raffledraw.draw import (
    Attendee,
    DrawEngine,
    EmptyPoolError,
    EmptyPrizeQueueError,
    InvalidIntervalError,
    InvalidStateTransitionError,
    NoEligibleCandidatesError,
    Prize,
    RunState,
    WinnerRecord,
)

FIXED_NOW = datetime(2025, 5, 1, 18, 30, tzinfo=timezone.utc)


class ManualHandle:
    def __init__(self, delay: float, callback: Callable[..., Any], args: tuple) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose callbacks only run when the test fires them."""

    def __init__(self) -> None:
        self.handles: list[ManualHandle] = []

    def call_later(self, delay, callback, *args):
        handle = ManualHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def fire(self, handle: ManualHandle) -> Any:
        """Run ``handle`` even if cancelled, like a loop racing a late cancel."""
        self.handles.remove(handle)
        return handle.callback(*handle.args)

    def fire_next(self) -> Any:
        handle = self.pending[0]
        return self.fire(handle)


def _prizes(*names: str) -> list[Prize]:
    return [Prize(id=f"p{i}", name=name) for i, name in enumerate(names, start=1)]


def _attendees(*names: str, checked_in: bool = True) -> list[Attendee]:
    return [Attendee(id=name.lower(), full_name=name, checked_in=checked_in) for name in names]


def _winner(attendee_id: str, prize_id: str = "old-prize") -> WinnerRecord:
    return WinnerRecord(
        event_id="evt",
        prize_id=prize_id,
        attendee_id=attendee_id,
        prize_name="Old prize",
        attendee_name=attendee_id.title(),
        timestamp=FIXED_NOW,
    )


class DrawEngineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = ManualScheduler()
        self.engine = DrawEngine(
            "evt",
            rng=random.Random(42),
            scheduler=self.scheduler,
            clock=lambda: FIXED_NOW,
        )


class InitializeTests(DrawEngineTestCase):
    def test_new_engine_is_configuring(self) -> None:
        self.assertEqual(self.engine.state, RunState.CONFIGURING)
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.draw_one()

    def test_initialize_seeds_exclusions_from_persisted_winners(self) -> None:
        warnings = self.engine.initialize(
            _prizes("TV"), _attendees("Ana", "Ben", "Cleo"), [_winner("ben")]
        )
        self.assertEqual(warnings, [])
        self.assertEqual(self.engine.state, RunState.IDLE)
        self.assertEqual(self.engine.cursor, 0)
        self.assertEqual(self.engine.excluded_ids, frozenset({"ben"}))
        self.assertEqual(
            [a.id for a in self.engine.available_candidates()], ["ana", "cleo"]
        )

    def test_empty_prize_queue_raises_without_state_change(self) -> None:
        with self.assertRaises(EmptyPrizeQueueError):
            self.engine.initialize([], _attendees("Ana"), [])
        self.assertEqual(self.engine.state, RunState.CONFIGURING)

    def test_pool_without_check_ins_raises_empty_pool(self) -> None:
        with self.assertRaises(EmptyPoolError):
            self.engine.initialize(_prizes("TV"), _attendees("Ana", checked_in=False), [])
        with self.assertRaises(EmptyPoolError):
            self.engine.initialize(_prizes("TV"), [], [])
        self.assertEqual(self.engine.state, RunState.CONFIGURING)

    def test_failed_reinitialize_keeps_previous_run(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben"), [])
        self.engine.draw_one()
        with self.assertRaises(EmptyPrizeQueueError):
            self.engine.initialize([], _attendees("Ana"), [])
        self.assertEqual(self.engine.state, RunState.AWAITING_ADVANCE)
        self.assertEqual(len(self.engine.accumulated_winners), 1)

    def test_warns_when_fewer_eligible_attendees_than_prizes(self) -> None:
        warnings = self.engine.initialize(
            _prizes("TV", "Mug", "Pen"), _attendees("Ana", "Ben"), []
        )
        self.assertEqual(len(warnings), 1)
        self.assertIn("3 prizes but only 2 eligible", warnings[0])

    def test_initialize_twice_yields_same_exclusions(self) -> None:
        persisted = [_winner("ana", "x"), _winner("cleo", "y")]
        self.engine.initialize(_prizes("TV"), _attendees("Ana", "Ben", "Cleo"), persisted)
        first = self.engine.excluded_ids
        self.engine.initialize(_prizes("TV"), _attendees("Ana", "Ben", "Cleo"), persisted)
        self.assertEqual(self.engine.excluded_ids, first)
        self.assertEqual(first, frozenset({"ana", "cleo"}))

    def test_initialize_cancels_pending_timer(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben"), [])
        self.engine.start_automated_run(3)
        handle = self.scheduler.pending[0]
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben"), [])
        self.assertTrue(handle.cancelled)
        self.assertFalse(self.engine.is_auto_running)
        self.assertEqual(self.engine.accumulated_winners, ())


class DrawOneTests(DrawEngineTestCase):
    def test_draw_one_records_winner_and_advances(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben", "Cleo"), [])

        record = self.engine.draw_one()

        self.assertEqual(record.event_id, "evt")
        self.assertEqual(record.prize_id, "p1")
        self.assertEqual(record.prize_name, "TV")
        self.assertIn(record.attendee_id, {"ana", "ben", "cleo"})
        self.assertEqual(record.attendee_name, record.attendee_id.title())
        self.assertEqual(record.timestamp, FIXED_NOW)
        self.assertEqual(self.engine.cursor, 1)
        self.assertEqual(self.engine.state, RunState.AWAITING_ADVANCE)
        self.assertIn(record.attendee_id, self.engine.excluded_ids)
        self.assertEqual(self.engine.accumulated_winners, (record,))
        self.assertEqual(self.engine.current_prize, Prize(id="p2", name="Mug"))

    def test_last_prize_completes_the_run(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben", "Cleo"), [])
        self.engine.draw_one()
        self.engine.draw_one()
        self.assertEqual(self.engine.state, RunState.COMPLETED)
        self.assertEqual(self.engine.remaining_prizes, 0)
        self.assertIsNone(self.engine.current_prize)
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.draw_one()

    def test_no_attendee_wins_twice(self) -> None:
        names = [f"Guest{i}" for i in range(10)]
        prizes = _prizes(*[f"Prize {i}" for i in range(10)])
        persisted = [_winner("guest3"), _winner("guest7", "other")]
        self.engine.initialize(prizes, _attendees(*names), persisted)

        drawn = []
        while True:
            try:
                drawn.append(self.engine.draw_one())
            except NoEligibleCandidatesError as exc:
                self.assertEqual(exc.awarded, 8)
                self.assertEqual(exc.skipped, 2)
                break

        winner_ids = [r.attendee_id for r in drawn]
        self.assertEqual(len(winner_ids), 8)
        self.assertEqual(len(set(winner_ids)), 8)
        self.assertNotIn("guest3", winner_ids)
        self.assertNotIn("guest7", winner_ids)
        self.assertEqual(self.engine.state, RunState.COMPLETED)

    def test_already_won_attendee_reports_no_eligible_candidates(self) -> None:
        # Single attendee already won a different prize of the same event.
        warnings = self.engine.initialize(
            _prizes("TV"), _attendees("Ana"), [_winner("ana", "earlier-prize")]
        )
        self.assertEqual(self.engine.state, RunState.IDLE)
        self.assertEqual(len(warnings), 1)
        self.assertIn("ana", self.engine.excluded_ids)

        with self.assertRaises(NoEligibleCandidatesError) as ctx:
            self.engine.draw_one()
        self.assertEqual(ctx.exception.awarded, 0)
        self.assertEqual(ctx.exception.skipped, 1)
        self.assertEqual(self.engine.cursor, 0)
        self.assertEqual(self.engine.state, RunState.COMPLETED)
        self.assertEqual(self.engine.accumulated_winners, ())

    def test_not_checked_in_attendees_are_never_drawn(self) -> None:
        pool = _attendees("Ana") + _attendees("Ben", "Cleo", checked_in=False)
        self.engine.initialize(_prizes("TV"), pool, [])
        record = self.engine.draw_one()
        self.assertEqual(record.attendee_id, "ana")

    def test_refresh_pool_adds_new_check_ins_but_keeps_exclusions(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana"), [])
        first = self.engine.draw_one()
        self.assertEqual(first.attendee_id, "ana")

        self.engine.refresh_pool(_attendees("Ana", "Ben"))
        second = self.engine.draw_one()
        self.assertEqual(second.attendee_id, "ben")

    def test_refresh_pool_without_check_ins_raises_empty_pool(self) -> None:
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben"), [])
        with self.assertRaises(EmptyPoolError):
            self.engine.refresh_pool(_attendees("Ana", "Ben", checked_in=False))
        with self.assertRaises(EmptyPoolError):
            self.engine.refresh_pool([])

        self.assertEqual(
            [a.id for a in self.engine.available_candidates()], ["ana", "ben"]
        )
        self.assertIn(self.engine.draw_one().attendee_id, {"ana", "ben"})

    def test_listeners_receive_records(self) -> None:
        seen: list[WinnerRecord] = []
        self.engine.add_listener(seen.append)
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben"), [])
        record = self.engine.draw_one()
        self.assertEqual(seen, [record])

        self.engine.remove_listener(seen.append)
        self.engine.draw_one()
        self.assertEqual(len(seen), 1)

    def test_reentrant_draw_from_listener_is_rejected_during_automated_run(self) -> None:
        errors: list[Exception] = []

        def greedy_listener(_record: WinnerRecord) -> None:
            try:
                self.engine.draw_one()
            except InvalidStateTransitionError as exc:
                errors.append(exc)

        self.engine.add_listener(greedy_listener)
        self.engine.initialize(_prizes("TV", "Mug"), _attendees("Ana", "Ben", "Cleo"), [])
        self.engine.start_automated_run(2)
        self.assertEqual(len(errors), 1)
        self.assertEqual(len(self.engine.accumulated_winners), 1)

    def test_rng_failure_restores_state(self) -> None:
        class BrokenRandom:
            def randrange(self, stop: int) -> int:
                raise RuntimeError("entropy source unavailable")

        engine = DrawEngine("evt", rng=BrokenRandom(), scheduler=self.scheduler)
        engine.initialize(_prizes("TV"), _attendees("Ana"), [])
        with self.assertRaises(RuntimeError):
            engine.draw_one()
        self.assertEqual(engine.state, RunState.IDLE)
        self.assertEqual(engine.excluded_ids, frozenset())


class AutomatedRunTests(DrawEngineTestCase):
    def test_two_prizes_three_attendees(self) -> None:
        summaries = []
        self.engine.add_run_finished_listener(summaries.append)
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B", "C"), [])

        result = self.engine.start_automated_run(3)

        self.assertIsNone(result)
        self.assertEqual(len(self.engine.accumulated_winners), 1)
        first = self.engine.accumulated_winners[0]
        self.assertEqual(first.prize_id, "p1")
        self.assertEqual(len(self.scheduler.pending), 1)
        self.assertEqual(self.scheduler.pending[0].delay, 3.0)
        self.assertTrue(self.engine.is_auto_running)

        self.scheduler.fire_next()

        winners = self.engine.accumulated_winners
        self.assertEqual(self.engine.state, RunState.COMPLETED)
        self.assertEqual(len(winners), 2)
        self.assertEqual(winners[1].prize_id, "p2")
        self.assertNotEqual(winners[0].attendee_id, winners[1].attendee_id)
        self.assertEqual(self.scheduler.pending, [])
        self.assertFalse(self.engine.is_auto_running)
        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].outcome, "completed")
        self.assertEqual(summaries[0].awarded, 2)
        self.assertEqual(summaries[0].skipped, 0)
        self.assertEqual(summaries[0].winners, winners)

    def test_single_prize_run_returns_summary_immediately(self) -> None:
        self.engine.initialize(_prizes("TV"), _attendees("Ana", "Ben"), [])
        summary = self.engine.start_automated_run(1)
        self.assertIsNotNone(summary)
        assert summary is not None
        self.assertEqual(summary.outcome, "completed")
        self.assertEqual(self.scheduler.handles, [])

    def test_exhaustion_stops_run_and_reports_shortfall(self) -> None:
        summaries = []
        self.engine.add_run_finished_listener(summaries.append)
        self.engine.initialize(
            _prizes("P1", "P2", "P3", "P4"),
            _attendees("A", "B", "C"),
            [_winner("c")],
        )
        self.engine.start_automated_run(1)
        self.scheduler.fire_next()
        summary = self.scheduler.fire_next()

        self.assertEqual(summary.outcome, "exhausted")
        self.assertTrue(summary.exhausted)
        self.assertEqual(summary.awarded, 2)
        self.assertEqual(summary.skipped, 2)
        self.assertEqual(len(self.engine.accumulated_winners), 2)
        self.assertEqual(self.engine.state, RunState.COMPLETED)
        self.assertEqual(self.scheduler.pending, [])
        self.assertEqual(summaries, [summary])

    def test_exhaustion_on_first_draw_returns_summary(self) -> None:
        self.engine.initialize(_prizes("P1"), _attendees("A"), [_winner("a")])
        summary = self.engine.start_automated_run(1)
        assert summary is not None
        self.assertEqual(summary.outcome, "exhausted")
        self.assertEqual(summary.awarded, 0)
        self.assertEqual(summary.skipped, 1)

    def test_listener_error_in_timed_draw_ends_run_with_failed_summary(self) -> None:
        summaries = []
        drawn: list[WinnerRecord] = []

        def flaky_animation(record: WinnerRecord) -> None:
            drawn.append(record)
            if len(drawn) == 2:
                raise RuntimeError("animation crashed")

        self.engine.add_listener(flaky_animation)
        self.engine.add_run_finished_listener(summaries.append)
        self.engine.initialize(
            _prizes("P1", "P2", "P3"), _attendees("Ana", "Ben", "Cleo"), []
        )
        self.assertIsNone(self.engine.start_automated_run(1))

        with self.assertLogs("raffledraw.draw.engine", level="ERROR"):
            summary = self.scheduler.fire_next()

        self.assertEqual(summaries, [summary])
        self.assertEqual(summary.outcome, "failed")
        self.assertTrue(summary.failed)
        self.assertIsInstance(summary.error, RuntimeError)
        self.assertEqual(summary.awarded, 2)
        self.assertEqual(summary.skipped, 1)
        self.assertEqual(summary.winners, tuple(drawn))
        self.assertFalse(self.engine.is_auto_running)
        self.assertEqual(self.scheduler.pending, [])
        self.assertEqual(self.engine.state, RunState.AWAITING_ADVANCE)

    def test_error_in_first_draw_is_raised_and_reported(self) -> None:
        summaries = []

        def broken_animation(_record: WinnerRecord) -> None:
            raise RuntimeError("animation crashed")

        self.engine.add_listener(broken_animation)
        self.engine.add_run_finished_listener(summaries.append)
        self.engine.initialize(_prizes("P1", "P2"), _attendees("Ana", "Ben"), [])

        with self.assertLogs("raffledraw.draw.engine", level="ERROR"):
            with self.assertRaises(RuntimeError):
                self.engine.start_automated_run(1)

        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].outcome, "failed")
        self.assertEqual(summaries[0].awarded, 1)
        self.assertFalse(self.engine.is_auto_running)
        self.assertEqual(self.scheduler.pending, [])

    def test_run_resets_cursor_but_keeps_persisted_exclusions(self) -> None:
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B", "C"), [_winner("a")])
        self.engine.start_automated_run(1)
        self.scheduler.fire_next()
        ids = {w.attendee_id for w in self.engine.accumulated_winners}
        self.assertEqual(ids, {"b", "c"})

    def test_invalid_intervals_are_rejected(self) -> None:
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
        for value in (0, 0.5, -3, float("nan"), float("inf"), True, "3", None):
            with self.subTest(value=value):
                with self.assertRaises(InvalidIntervalError):
                    self.engine.start_automated_run(value)  # type: ignore[arg-type]
        self.assertEqual(self.engine.state, RunState.IDLE)
        self.assertEqual(self.scheduler.handles, [])

    def test_invalid_interval_is_also_a_value_error(self) -> None:
        self.engine.initialize(_prizes("P1"), _attendees("A"), [])
        with self.assertRaises(ValueError):
            self.engine.start_automated_run(0)

    def test_run_requires_idle_state(self) -> None:
        self.engine.initialize(_prizes("P1", "P2", "P3"), _attendees("A", "B", "C"), [])
        self.engine.draw_one()
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.start_automated_run(2)

    def test_cannot_start_second_run_while_running(self) -> None:
        self.engine.initialize(_prizes("P1", "P2", "P3"), _attendees("A", "B", "C"), [])
        self.engine.start_automated_run(2)
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.start_automated_run(2)
        self.assertEqual(len(self.scheduler.pending), 1)

    def test_manual_draw_rejected_while_timer_pending(self) -> None:
        self.engine.initialize(_prizes("P1", "P2", "P3"), _attendees("A", "B", "C"), [])
        self.engine.start_automated_run(2)
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.draw_one()
        self.assertEqual(len(self.engine.accumulated_winners), 1)


class CancellationTests(DrawEngineTestCase):
    def test_stop_during_delay_prevents_further_draws(self) -> None:
        summaries = []
        self.engine.add_run_finished_listener(summaries.append)
        self.engine.initialize(_prizes("P1", "P2", "P3"), _attendees("A", "B", "C"), [])
        self.engine.start_automated_run(5)
        handle = self.scheduler.pending[0]

        summary = self.engine.stop_automated_run()

        self.assertTrue(handle.cancelled)
        assert summary is not None
        self.assertEqual(summary.outcome, "cancelled")
        self.assertEqual(summary.awarded, 1)
        self.assertEqual(summary.skipped, 2)
        self.assertEqual(summaries, [summary])
        self.assertEqual(self.engine.state, RunState.AWAITING_ADVANCE)
        self.assertFalse(self.engine.is_auto_running)

        # Even if the loop had already dequeued the callback, it must not draw.
        self.assertIsNone(self.scheduler.fire(handle))
        self.assertEqual(len(self.engine.accumulated_winners), 1)

    def test_draws_resume_only_when_explicitly_requested(self) -> None:
        self.engine.initialize(_prizes("P1", "P2", "P3"), _attendees("A", "B", "C"), [])
        self.engine.start_automated_run(5)
        self.engine.stop_automated_run()
        self.assertEqual(self.scheduler.pending, [])

        record = self.engine.draw_one()
        self.assertEqual(record.prize_id, "p2")
        self.assertEqual(self.scheduler.pending, [])

    def test_stop_is_idempotent(self) -> None:
        self.assertIsNone(self.engine.stop_automated_run())
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
        self.assertIsNone(self.engine.stop_automated_run())
        self.engine.start_automated_run(1)
        self.assertIsNotNone(self.engine.stop_automated_run())
        self.assertIsNone(self.engine.stop_automated_run())
        self.assertEqual(self.engine.state, RunState.AWAITING_ADVANCE)

    def test_stop_from_listener_during_first_draw(self) -> None:
        self.engine.add_listener(lambda _record: self.engine.stop_automated_run())
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
        self.assertIsNone(self.engine.start_automated_run(1))
        self.assertEqual(self.scheduler.handles, [])
        self.assertEqual(len(self.engine.accumulated_winners), 1)
        self.assertFalse(self.engine.is_auto_running)

    def test_stop_after_completion_keeps_completed_state(self) -> None:
        self.engine.initialize(_prizes("P1"), _attendees("A"), [])
        self.engine.start_automated_run(1)
        self.assertIsNone(self.engine.stop_automated_run())
        self.assertEqual(self.engine.state, RunState.COMPLETED)


class ResetTests(DrawEngineTestCase):
    def test_reset_forgets_discarded_draws(self) -> None:
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B", "C"), [_winner("a")])
        self.engine.draw_one()
        self.engine.draw_one()
        self.assertEqual(self.engine.state, RunState.COMPLETED)

        self.engine.reset()

        self.assertEqual(self.engine.state, RunState.IDLE)
        self.assertEqual(self.engine.cursor, 0)
        self.assertEqual(self.engine.accumulated_winners, ())
        self.assertEqual(self.engine.excluded_ids, frozenset({"a"}))

    def test_reset_cancels_pending_timer(self) -> None:
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
        self.engine.start_automated_run(4)
        handle = self.scheduler.pending[0]
        self.engine.reset()
        self.assertTrue(handle.cancelled)
        self.assertIsNone(self.scheduler.fire(handle))
        self.assertEqual(self.engine.accumulated_winners, ())
        self.assertEqual(self.engine.state, RunState.IDLE)

    def test_reset_before_initialize_stays_configuring(self) -> None:
        self.engine.reset()
        self.assertEqual(self.engine.state, RunState.CONFIGURING)

    def test_runs_after_reset_never_repeat_persisted_winners(self) -> None:
        persisted = [_winner("a"), _winner("b", "other")]
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B", "C", "D", "E"), persisted)
        for _ in range(20):
            self.engine.draw_one()
            self.engine.draw_one()
            ids = [w.attendee_id for w in self.engine.accumulated_winners]
            self.assertEqual(len(set(ids)), 2)
            self.assertTrue(set(ids).isdisjoint({"a", "b"}))
            self.engine.reset()


class TeardownTests(DrawEngineTestCase):
    def test_close_cancels_timer_and_blocks_draws(self) -> None:
        self.engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
        self.engine.start_automated_run(2)
        handle = self.scheduler.pending[0]

        self.engine.close()

        self.assertTrue(handle.cancelled)
        self.assertEqual(self.engine.state, RunState.CANCELLED)
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.draw_one()
        with self.assertRaises(InvalidStateTransitionError):
            self.engine.start_automated_run(2)

    def test_context_manager_closes_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.engine as engine:
                engine.initialize(_prizes("P1", "P2"), _attendees("A", "B"), [])
                engine.start_automated_run(2)
                raise RuntimeError("screen closed")
        self.assertEqual(self.scheduler.pending, [])
        self.assertEqual(self.engine.state, RunState.CANCELLED)


if __name__ == "__main__":
    unittest.main()
