# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Pytest configuration and fixtures for cage monitor tests."""
from __future__ import annotations

import itertools
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from cagemonitor import CageMonitor, StirTimingConfig
from cagemonitor.console.commands import CommandHandler


# ============================================================================
# Fake event loop
# ============================================================================

class FakeTimerHandle:
    """Timer handle returned by FakeLoop."""

    def __init__(self, when: float, seq: int, callback: Callable, args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class FakeLoop:
    """Event loop stand-in with a manually advanced clock.

    Provides the time()/call_later()/call_at() subset the stir scheduler
    uses. Nothing runs until advance() is called.
    """

    def __init__(self):
        self.now = 0.0
        self._handles: list[FakeTimerHandle] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_at(self, when: float, callback: Callable, *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(when, next(self._seq), callback, args)
        self._handles.append(handle)
        return handle

    def call_later(self, delay: float, callback: Callable, *args: Any) -> FakeTimerHandle:
        return self.call_at(self.now + delay, callback, *args)

    def live_handles(self) -> list[FakeTimerHandle]:
        """Handles that are neither cancelled nor fired."""
        return [h for h in self._handles if not h.cancelled()]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in time order."""
        target = self.now + seconds
        while True:
            due = [h for h in self.live_handles() if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self.now = target


# ============================================================================
# Monitor fixtures
# ============================================================================

@pytest.fixture
def fake_loop() -> FakeLoop:
    """A loop whose clock only moves when the test advances it."""
    return FakeLoop()


@pytest.fixture
def timing() -> StirTimingConfig:
    """Default stir timing (30s initial pulse)."""
    return StirTimingConfig()


@pytest.fixture
def monitor(fake_loop, timing) -> CageMonitor:
    """A monitor driven by the fake loop."""
    m = CageMonitor(timing=timing, loop=fake_loop)
    yield m
    m.stop()


@pytest.fixture
def bank(monitor):
    return monitor.bank


@pytest.fixture
def engine(monitor):
    return monitor.engine


@pytest.fixture
def scheduler(monitor):
    return monitor.scheduler


@pytest.fixture
def group(monitor):
    return monitor.group


@pytest.fixture
def stop_callback() -> MagicMock:
    return MagicMock()


@pytest.fixture
def handler(monitor, stop_callback) -> CommandHandler:
    """A command handler bound to the fake-loop monitor."""
    return CommandHandler(monitor, stop_callback=stop_callback)


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture
def change_tracker(bank) -> list[tuple]:
    """Record (old, new) pairs from bank change notifications."""
    changes: list[tuple] = []
    bank.add_listener(lambda old, new: changes.append((old, new)))
    return changes
