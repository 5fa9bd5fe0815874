"""
Unit tests for countdown timers and the timer controller.
"""
import unittest
import asyncio
from unittest.mock import Mock, patch

from trivia_challenge.models import TimerState
from trivia_challenge.timers import CountdownTimer, TimerController, TimerLifecycleLogger


class TestCountdownTimer(unittest.TestCase):
    """Test cases for a single countdown."""

    def setUp(self):
        self.on_tick = Mock()
        self.on_expire = Mock()
        self.timer = CountdownTimer("per_question", 3, self.on_tick, self.on_expire)

    def test_ticks_down_and_expires_once(self):
        self.timer.start()
        self.assertFalse(self.timer.tick())
        self.assertFalse(self.timer.tick())
        self.assertTrue(self.timer.tick())

        self.assertEqual(self.timer.state, TimerState.EXPIRED)
        self.assertEqual([c.args[0] for c in self.on_tick.call_args_list], [2, 1, 0])
        self.on_expire.assert_called_once()

        # Further ticks are ignored
        self.assertFalse(self.timer.tick())
        self.on_expire.assert_called_once()

    def test_paused_timer_does_not_tick(self):
        self.timer.start()
        self.assertTrue(self.timer.pause())
        self.timer.tick()
        self.assertEqual(self.timer.remaining, 3)
        self.on_tick.assert_not_called()

        self.assertTrue(self.timer.resume())
        self.timer.tick()
        self.assertEqual(self.timer.remaining, 2)

    def test_pause_and_resume_require_matching_state(self):
        self.assertFalse(self.timer.pause())
        self.timer.start()
        self.assertFalse(self.timer.resume())

    def test_stopped_inside_tick_callback_does_not_expire(self):
        self.timer.on_tick = lambda remaining: self.timer.stop()
        self.timer.start(1)
        self.assertFalse(self.timer.tick())
        self.on_expire.assert_not_called()
        self.assertEqual(self.timer.state, TimerState.STOPPED)

    def test_restart_resets_remaining(self):
        self.timer.start()
        self.timer.tick()
        self.timer.start()
        self.assertEqual(self.timer.remaining, 3)


class TestTimerController(unittest.TestCase):
    """Test cases for the per-question / whole-round pair."""

    def setUp(self):
        self.controller = TimerController(question_limit=20, round_limit=180)
        self.ticks = []
        self.question_expired = Mock()
        self.round_expired = Mock()
        self.controller.bind(
            lambda name, remaining: self.ticks.append((name, remaining)),
            self.question_expired,
            self.round_expired
        )

    def test_only_one_timer_runs(self):
        self.controller.start_question_timer()
        self.controller.start_round_timer()
        self.assertEqual(self.controller.question_timer.state, TimerState.STOPPED)
        self.assertEqual(self.controller.round_timer.state, TimerState.RUNNING)

    def test_active_follows_mode(self):
        self.assertIs(self.controller.active, self.controller.question_timer)
        self.controller.use_round_timer = True
        self.assertIs(self.controller.active, self.controller.round_timer)

    def test_tick_reports_timer_name(self):
        self.controller.start()
        self.controller.tick()
        self.assertEqual(self.ticks, [("per_question", 19)])

    def test_round_expiry_callback(self):
        self.controller = TimerController(question_limit=20, round_limit=2, use_round_timer=True)
        self.controller.bind(Mock(), self.question_expired, self.round_expired)
        self.controller.start()
        self.controller.tick()
        self.controller.tick()
        self.round_expired.assert_called_once()
        self.question_expired.assert_not_called()

    def test_is_ticking_includes_paused(self):
        self.controller.start()
        self.controller.pause()
        self.assertTrue(self.controller.is_ticking())
        self.controller.stop()
        self.assertFalse(self.controller.is_ticking())


class TestTimerDriver(unittest.IsolatedAsyncioTestCase):
    """Test cases for the asyncio driver loop."""

    async def test_run_ticks_until_expired(self):
        controller = TimerController(question_limit=3)
        expired = Mock()
        controller.bind(Mock(), expired, Mock())
        controller.start()

        await asyncio.wait_for(controller.run(interval=0), timeout=2)

        expired.assert_called_once()
        self.assertEqual(controller.state, TimerState.EXPIRED)

    async def test_run_returns_when_stopped(self):
        controller = TimerController(question_limit=100)
        controller.bind(Mock(), Mock(), Mock())
        controller.start()
        task = asyncio.create_task(controller.run(interval=0.01))
        await asyncio.sleep(0.03)
        controller.stop()
        await asyncio.wait_for(task, timeout=2)
        self.assertTrue(task.done())

    async def test_run_cancellation_propagates(self):
        controller = TimerController(question_limit=100)
        controller.bind(Mock(), Mock(), Mock())
        controller.start()
        task = asyncio.create_task(controller.run(interval=10))
        await asyncio.sleep(0)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

    async def test_driver_error_is_logged_and_raised(self):
        controller = TimerController(question_limit=5)
        controller.bind(Mock(side_effect=RuntimeError("boom")), Mock(), Mock())
        controller.start()
        with patch.object(TimerLifecycleLogger, 'log_timer_error') as log_error:
            with self.assertRaises(RuntimeError):
                await controller.run(interval=0)
        log_error.assert_called_once()


if __name__ == '__main__':
    unittest.main()
