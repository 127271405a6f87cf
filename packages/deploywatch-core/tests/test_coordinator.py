"""
Tests for WatchCoordinator lifecycle.

These tests verify:
- Outcome and exit code for succeeded, failed, errored and cancelled watches
- Exactly one final frame is drawn after both loops stop
- The cursor is restored however the watch ends
- Cancellation interrupts both the poll interval wait and an in-flight fetch
"""

import asyncio
import io
import os
import signal
from datetime import timedelta

import pytest
from rich.console import Console

from deploywatch_core.coordinator import (
    LoopState,
    WatchCoordinator,
    WatchOutcome,
    WatchStatus,
)
from deploywatch_core.exceptions import OrchestrationAPIError
from deploywatch_core.poller import DeploymentPoller
from deploywatch_core.tui.ansi import SHOW_CURSOR
from deploywatch_core.tui.display import LiveTreeDisplay
from deploywatch_core.tui.renderer import TreeRenderer


class RecordingDisplay(LiveTreeDisplay):
    """LiveTreeDisplay that records the coordinator state of every draw."""

    def __init__(self) -> None:
        self.buffer = io.StringIO()
        super().__init__(TreeRenderer(), Console(file=self.buffer))
        self.coordinator: WatchCoordinator | None = None
        self.draw_states: list[LoopState | None] = []
        self.drawn: list = []

    def draw(self, snapshot, now=None):
        self.draw_states.append(self.coordinator.state if self.coordinator else None)
        self.drawn.append(snapshot)
        return super().draw(snapshot, now)


class FlakyDisplay(RecordingDisplay):
    """RecordingDisplay whose terminal write fails on selected draws."""

    def __init__(self, failing_draws: set[int]) -> None:
        super().__init__()
        self.failing_draws = failing_draws

    def draw(self, snapshot, now=None):
        count = super().draw(snapshot, now)
        if len(self.drawn) in self.failing_draws:
            raise OSError("transient write failure")
        return count


def make_coordinator(
    client, poll_interval=0.01, display: RecordingDisplay | None = None
) -> tuple[WatchCoordinator, RecordingDisplay]:
    display = display if display is not None else RecordingDisplay()
    coordinator = WatchCoordinator(
        poller=DeploymentPoller(client),
        display=display,
        poll_interval=poll_interval,
        render_interval=0.005,
        handle_signals=False,
    )
    display.coordinator = coordinator
    return coordinator, display


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _spin():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_spin(), timeout=timeout)


class TestOutcome:
    def test_exit_codes(self):
        assert WatchOutcome(WatchStatus.SUCCEEDED).exit_code == 0
        assert WatchOutcome(WatchStatus.FAILED).exit_code == 1
        assert WatchOutcome(WatchStatus.ERROR).exit_code == 2
        assert WatchOutcome(WatchStatus.CANCELLED).exit_code == 130

    @pytest.mark.asyncio
    async def test_succeeded_root(self, graph_client, ids):
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        coordinator, display = make_coordinator(graph_client)

        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.SUCCEEDED
        assert outcome.root_state == "Succeeded"
        assert outcome.exit_code == 0
        assert coordinator.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_failed_root(self, graph_client, ids):
        graph_client.set_root_state("Failed", timedelta(seconds=12))
        coordinator, _ = make_coordinator(graph_client)

        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.FAILED
        assert outcome.exit_code == 1

    @pytest.mark.asyncio
    async def test_canceled_root_is_failure(self, graph_client, ids):
        graph_client.set_root_state("Canceled", timedelta(seconds=3))
        coordinator, _ = make_coordinator(graph_client)

        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.FAILED
        assert outcome.root_state == "Canceled"

    @pytest.mark.asyncio
    async def test_keeps_polling_until_root_terminal(self, graph_client, ids):
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: coordinator.poller.cycles >= 3)
        assert not task.done()
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))

        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.SUCCEEDED
        assert display.drawn[-1].root.state == "Succeeded"


class TestFinalFrame:
    @pytest.mark.asyncio
    async def test_exactly_one_draw_after_loops_stop(self, graph_client, ids):
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: display.frames >= 2)
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        await asyncio.wait_for(task, timeout=2.0)

        assert display.draw_states.count(LoopState.COMPLETING) == 1
        assert display.draw_states[-1] is LoopState.COMPLETING
        assert set(display.draw_states[:-1]) == {LoopState.RUNNING}

    @pytest.mark.asyncio
    async def test_final_frame_shows_latest_snapshot(self, graph_client, ids):
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        coordinator, display = make_coordinator(graph_client)

        await coordinator.run(ids["root"])

        final = display.drawn[-1]
        assert final.root.state == "Succeeded"
        assert "RootDeployment" in display.buffer.getvalue()
        assert display.buffer.getvalue().endswith(SHOW_CURSOR)


class TestErrors:
    @pytest.mark.asyncio
    async def test_fetch_error_ends_watch(self, graph_client, ids):
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: coordinator.poller.cycles >= 1)
        graph_client.failing.add(ids["nested2"])
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.ERROR
        assert outcome.exit_code == 2
        assert isinstance(outcome.error, OrchestrationAPIError)
        assert outcome.root_state == "Running"

        # Last good snapshot is still drawn
        assert display.draw_states[-1] is LoopState.COMPLETING
        assert display.drawn[-1] is not None
        assert coordinator.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_error_before_first_snapshot(self, graph_client, ids):
        graph_client.failing.add(ids["root"])
        coordinator, display = make_coordinator(graph_client)

        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.ERROR
        assert outcome.root_state is None
        assert display.frames == 0
        assert display.buffer.getvalue() == SHOW_CURSOR


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_during_poll_interval(self, graph_client, ids):
        coordinator, display = make_coordinator(graph_client, poll_interval=60.0)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: coordinator.poller.cycles >= 1)
        coordinator.cancel()
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.CANCELLED
        assert outcome.exit_code == 130
        assert outcome.root_state == "Running"
        assert display.draw_states.count(LoopState.COMPLETING) == 1

    @pytest.mark.asyncio
    async def test_cancel_during_fetch(self, graph_client, ids):
        graph_client.block = asyncio.Event()
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: graph_client.get_calls)
        coordinator.cancel()
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.CANCELLED
        assert outcome.root_state is None
        assert display.drawn[-1] is None
        assert display.buffer.getvalue().endswith(SHOW_CURSOR)

    @pytest.mark.asyncio
    async def test_task_cancellation_restores_cursor(self, graph_client, ids):
        graph_client.block = asyncio.Event()
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: graph_client.get_calls)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert coordinator.state is LoopState.STOPPED
        assert display.draw_states[-1] is LoopState.COMPLETING
        assert display.buffer.getvalue().endswith(SHOW_CURSOR)

    @pytest.mark.asyncio
    async def test_sigint_requests_cancellation(self, graph_client, ids):
        display = RecordingDisplay()
        coordinator = WatchCoordinator(
            poller=DeploymentPoller(graph_client),
            display=display,
            poll_interval=60.0,
            render_interval=0.005,
        )
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: coordinator.poller.cycles >= 1)
        os.kill(os.getpid(), signal.SIGINT)
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.CANCELLED
        assert coordinator.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_cancel_during_later_cycle_draws_published_snapshot(self, graph_client, ids):
        coordinator, display = make_coordinator(graph_client)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: coordinator.poller.cycles >= 1)
        calls = len(graph_client.get_calls)
        graph_client.block = asyncio.Event()
        await wait_until(lambda: len(graph_client.get_calls) > calls)
        coordinator.cancel()
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.CANCELLED
        assert outcome.root_state == "Running"
        assert display.draw_states.count(LoopState.COMPLETING) == 1
        final = display.drawn[-1]
        assert final is not None
        assert final.root.state == "Running"
        output = display.buffer.getvalue()
        assert output.rfind("RootDeployment") > output.rfind("\x1b[?25l")
        assert output.endswith(SHOW_CURSOR)


class TestRenderFailures:
    @pytest.mark.asyncio
    async def test_failed_frame_does_not_stop_rendering(self, graph_client, ids):
        display = FlakyDisplay(failing_draws={3})
        coordinator, _ = make_coordinator(graph_client, display=display)
        task = asyncio.create_task(coordinator.run(ids["root"]))

        await wait_until(lambda: len(display.drawn) >= 6)
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        outcome = await asyncio.wait_for(task, timeout=2.0)

        assert outcome.status is WatchStatus.SUCCEEDED
        assert coordinator.failed_frames == 1
        assert display.draw_states[-1] is LoopState.COMPLETING

    @pytest.mark.asyncio
    async def test_failed_final_frame_keeps_outcome(self, graph_client, ids):
        graph_client.set_root_state("Failed", timedelta(seconds=12))
        display = FlakyDisplay(failing_draws=set(range(1, 100)))
        coordinator, _ = make_coordinator(graph_client, display=display)

        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.FAILED
        assert coordinator.state is LoopState.STOPPED
        assert display.buffer.getvalue().endswith(SHOW_CURSOR)


class TestReuse:
    @pytest.mark.asyncio
    async def test_second_run_polls_again(self, graph_client, ids):
        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        coordinator, display = make_coordinator(graph_client)

        first = await coordinator.run(ids["root"])
        second = await coordinator.run(ids["root"])

        assert first.status is WatchStatus.SUCCEEDED
        assert second.status is WatchStatus.SUCCEEDED
        assert coordinator.poller.cycles == 2

    @pytest.mark.asyncio
    async def test_cancel_does_not_leak_into_next_run(self, graph_client, ids):
        coordinator, _ = make_coordinator(graph_client, poll_interval=60.0)
        task = asyncio.create_task(coordinator.run(ids["root"]))
        await wait_until(lambda: coordinator.poller.cycles >= 1)
        coordinator.cancel()
        assert (await asyncio.wait_for(task, timeout=2.0)).status is WatchStatus.CANCELLED

        graph_client.set_root_state("Succeeded", timedelta(seconds=12))
        outcome = await coordinator.run(ids["root"])

        assert outcome.status is WatchStatus.SUCCEEDED
        assert coordinator.poller.cycles == 2
