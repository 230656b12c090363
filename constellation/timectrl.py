"""Simulation clock that steps time and notifies listeners."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable


class Mode(Enum):
    """How the controller advances simulation time."""

    REAL_TIME = 0
    ACCELERATED = 1


class TimeController:
    """Advances simulation time by a fixed tick and calls listeners each tick."""

    def __init__(self, start_time: datetime, tick: timedelta, mode: Mode = Mode.REAL_TIME) -> None:
        if tick <= timedelta(0):
            raise ValueError("tick must be positive")
        self.start_time = start_time
        self.tick = tick
        self.mode = mode
        self._listeners: list[Callable[[datetime], None]] = []

    def add_listener(self, callback: Callable[[datetime], None]) -> None:
        """Register a callback invoked with the simulation time on every tick."""
        self._listeners.append(callback)

    def start(self, duration: timedelta) -> threading.Event:
        """Run in a background thread for ``duration``; forever if not positive.

        Returns an event that is set when the controller finishes.
        """
        done = threading.Event()
        thread = threading.Thread(
            target=self._run, args=(duration, done), name="time-controller", daemon=True
        )
        thread.start()
        return done

    def _run(self, duration: timedelta, done: threading.Event) -> None:
        try:
            sim_time = self.start_time
            elapsed = timedelta(0)
            interval = self.tick.total_seconds()
            # Both modes pace on a ticker for determinism.
            next_deadline = time.monotonic() + interval
            while not (duration > timedelta(0) and elapsed >= duration):
                delay = next_deadline - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                next_deadline = max(next_deadline + interval, time.monotonic())

                sim_time += self.tick
                elapsed += self.tick
                for listener in list(self._listeners):
                    listener(sim_time)
        finally:
            done.set()