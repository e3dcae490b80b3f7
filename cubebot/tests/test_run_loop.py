"""
Tests for the timed run loop.

Async code is driven with asyncio.run; the loop's sleep is replaced by a
recorder so no test waits for real time.
"""

import asyncio

import pytest

from ..config import EngineConfig
from ..engine_core.executor import RunEventType
from ..engine_core.instruction import parse_program
from ..engine_core.state import RunStatus
from ..session.run_loop import LoopState, RunLoop


class RecordingSleep:
    """Records requested delays and yields to the event loop once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def config():
    return EngineConfig(step_duration=0.8, post_run_settle=0.5, reset_settle=0.1)


class TestTimedRun:
    """Tests for a run played to completion."""

    def test_waits_before_each_event(self, corridor_level, config):
        sleep = RecordingSleep()

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=sleep)
            return await loop.run(parse_program(["MOVE", "MOVE"]))

        outcome = asyncio.run(scenario())

        assert outcome.won
        # Reset is published straight away, so it is never slept for
        assert sleep.delays == pytest.approx([0.1, 0.16, 0.64, 0.16, 1.14])

    def test_failure_stops_without_settle(self, corridor_level, config):
        sleep = RecordingSleep()
        events = []

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=sleep)
            loop.subscribe(events.append)
            return await loop.run(parse_program(["MOVE", "MOVE", "MOVE"]))

        outcome = asyncio.run(scenario())

        assert outcome.status == RunStatus.LOST
        assert events[-1].event_type == RunEventType.FAILED
        assert sleep.delays == pytest.approx([0.1, 0.16, 0.64, 0.16, 0.64])

    def test_observers_see_every_event_in_order(self, corridor_level, config):
        events = []

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            loop.subscribe(events.append)
            await loop.run(parse_program(["MOVE", "MOVE"]))
            return loop

        loop = asyncio.run(scenario())

        assert [e.event_type for e in events] == [
            RunEventType.RESET,
            RunEventType.COMMIT,
            RunEventType.COLLECT,
            RunEventType.COMMIT,
            RunEventType.COLLECT,
            RunEventType.FINISHED,
        ]
        assert loop.state == LoopState.FINISHED
        assert loop.snapshot == events[-1].snapshot
        assert loop.outcome.won

    def test_real_sleep(self, corridor_level):
        """The default sleep is asyncio.sleep."""
        fast = EngineConfig(step_duration=0.01, post_run_settle=0.0, reset_settle=0.0)

        async def scenario():
            loop = RunLoop(corridor_level, fast)
            return await loop.run(parse_program(["MOVE", "MOVE"]))

        assert asyncio.run(scenario()).won

    def test_running_state(self, corridor_level, config):
        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            task = loop.start(parse_program(["MOVE"]))
            running = loop.is_running
            await task
            return running, loop.is_running

        during, after = asyncio.run(scenario())

        assert during
        assert not after


class TestSupersession:
    """Only the latest run may publish."""

    def test_second_start_supersedes_first(self, corridor_level, config):
        events = []

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            loop.subscribe(events.append)
            first = loop.start(parse_program(["MOVE", "MOVE", "MOVE"]))
            second = loop.start(parse_program(["MOVE", "MOVE"]))
            return await first, await second

        first, second = asyncio.run(scenario())

        assert first is None
        assert second.won
        types = [e.event_type for e in events]
        assert RunEventType.FAILED not in types
        assert types[:2] == [RunEventType.RESET, RunEventType.RESET]
        assert types[-1] == RunEventType.FINISHED

    def test_reset_during_run(self, corridor_level, config):
        events = []

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            initial = loop.snapshot
            loop.subscribe(events.append)
            task = loop.start(parse_program(["MOVE", "MOVE"]))
            await asyncio.sleep(0)
            snapshot = loop.reset()
            outcome = await task
            return loop, initial, snapshot, outcome

        loop, initial, snapshot, outcome = asyncio.run(scenario())

        assert outcome is None
        assert snapshot == initial
        assert loop.snapshot == initial
        assert loop.state == LoopState.IDLE
        assert loop.outcome is None
        assert events[-1].event_type == RunEventType.RESET

    def test_cancel_publishes_nothing(self, corridor_level, config):
        events = []

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            loop.subscribe(events.append)
            task = loop.start(parse_program(["MOVE", "MOVE"]))
            loop.cancel()
            return loop, await task

        loop, outcome = asyncio.run(scenario())

        assert outcome is None
        assert [e.event_type for e in events] == [RunEventType.RESET]
        assert loop.state == LoopState.IDLE


class TestObservers:
    """Tests for observer handling."""

    def test_failing_observer_does_not_stop_run(self, corridor_level, config):
        events = []

        def broken(event):
            raise RuntimeError("renderer crashed")

        async def scenario():
            loop = RunLoop(corridor_level, config, sleep=RecordingSleep())
            loop.subscribe(broken)
            loop.subscribe(events.append)
            return await loop.run(parse_program(["MOVE", "MOVE"]))

        outcome = asyncio.run(scenario())

        assert outcome.won
        assert events[-1].event_type == RunEventType.FINISHED

    def test_unsubscribe(self, corridor_level):
        events = []
        loop = RunLoop(corridor_level, EngineConfig.instant())
        unsubscribe = loop.subscribe(events.append)
        unsubscribe()

        loop.run_instant(parse_program(["MOVE"]))

        assert events == []


class TestInstantRun:
    """Tests for run_instant."""

    def test_publishes_every_event(self, corridor_level, config):
        events = []
        loop = RunLoop(corridor_level, config)
        loop.subscribe(events.append)

        result = loop.run_instant(parse_program(["MOVE", "MOVE"]))

        assert result.outcome.won
        assert events == result.events
        assert loop.state == LoopState.FINISHED
        assert loop.outcome.won

    def test_reset_after_win(self, corridor_level):
        loop = RunLoop(corridor_level, EngineConfig.instant())
        initial = loop.snapshot
        loop.run_instant(parse_program(["MOVE", "MOVE"]))

        assert loop.reset() == initial
        assert loop.reset() == initial
