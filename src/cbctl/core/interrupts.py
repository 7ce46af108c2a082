# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Signal-driven diagnostics and shutdown.

While a submission runs, a background thread consumes interruption signals:
- DUMP signals (SIGUSR1): write every thread's stack to stderr, keep running
- DUMP_AND_TERMINATE signals (SIGHUP, SIGINT, SIGTERM): write the stacks,
  cancel the running build, then exit immediately with SIGNAL_EXIT_CODE

The signal handlers themselves only enqueue the signal number; all work
happens on the listener thread.
"""

import contextlib
import logging
import os
import queue
import signal
import sys
import threading
import traceback
from collections.abc import Callable, Iterator
from enum import Enum
from typing import TextIO

from cbctl.core.errors import SIGNAL_EXIT_CODE

logger = logging.getLogger(__name__)

_STOP = object()


class InterruptEvent(str, Enum):
    DUMP = "dump"
    DUMP_AND_TERMINATE = "dump_and_terminate"


def platform_signals() -> dict[InterruptEvent, frozenset[signal.Signals]]:
    """Signals handled on this platform, grouped by event."""
    if not sys.platform.startswith("linux"):
        return {InterruptEvent.DUMP: frozenset(), InterruptEvent.DUMP_AND_TERMINATE: frozenset()}
    return {
        InterruptEvent.DUMP: frozenset({signal.SIGUSR1}),
        InterruptEvent.DUMP_AND_TERMINATE: frozenset({signal.SIGHUP, signal.SIGINT, signal.SIGTERM}),
    }


def dump_stacktraces(stream: TextIO) -> None:
    """Write the current stack of every thread to stream."""
    frames = sys._current_frames()
    for thread in threading.enumerate():
        frame = frames.get(thread.ident)
        if frame is None:
            continue
        stream.write(f'\nThread "{thread.name}" (ident={thread.ident}, daemon={thread.daemon}):\n')
        stream.write("".join(traceback.format_stack(frame)))
    stream.flush()


class InterruptListener:
    """Background consumer of interruption signals.

    Usage:
        listener = InterruptListener(controller.cancel, dump_signals, quit_signals)
        listener.start()
        try:
            ...
        finally:
            listener.stop()
    """

    def __init__(
        self,
        cancel: Callable[[], object],
        dump_signals: frozenset[signal.Signals],
        quit_signals: frozenset[signal.Signals],
        stream: TextIO | None = None,
        exit_func: Callable[[int], object] = os._exit,
    ):
        self.cancel = cancel
        self.dump_signals = dump_signals
        self.quit_signals = quit_signals
        self.stream = stream
        self.exit_func = exit_func
        # SimpleQueue.put is reentrant, so it is safe inside a signal handler
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._previous_handlers: dict[signal.Signals, object] = {}
        self._thread: threading.Thread | None = None

    def event_for(self, signum: int) -> InterruptEvent | None:
        if signum in self.quit_signals:
            return InterruptEvent.DUMP_AND_TERMINATE
        if signum in self.dump_signals:
            return InterruptEvent.DUMP
        return None

    def _enqueue(self, signum, frame):
        self._queue.put(signum)

    def handle_signal(self, signum: int) -> None:
        """Process one received signal on the listener thread."""
        event = self.event_for(signum)
        if event is None:
            return

        sig_name = signal.Signals(signum).name
        logger.info("Received signal %s...Dump stacktrace...", sig_name)
        dump_stacktraces(self.stream if self.stream is not None else sys.stderr)

        if event is InterruptEvent.DUMP_AND_TERMINATE:
            try:
                self.cancel()
            except Exception as e:
                logger.error("Cancellation after %s failed: %s", sig_name, e)
            self.exit_func(SIGNAL_EXIT_CODE)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            self.handle_signal(item)

    def start(self) -> None:
        """Install the signal handlers and start the listener thread."""
        signals = self.dump_signals | self.quit_signals
        if not signals:
            logger.debug("No signal handlers are set up")
            return

        logger.debug("Setting up signal handlers: %s", ", ".join(sorted(s.name for s in signals)))
        self._thread = threading.Thread(target=self._run, daemon=True, name="InterruptListener")
        self._thread.start()
        for sig in signals:
            self._previous_handlers[sig] = signal.signal(sig, self._enqueue)

    def stop(self) -> None:
        """Restore the previous handlers and stop the listener thread."""
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

        if self._thread is not None:
            self._queue.put(_STOP)
            self._thread.join(timeout=5.0)
            self._thread = None


@contextlib.contextmanager
def listen_for_interrupts(cancel: Callable[[], object], always_dump: bool = True) -> Iterator[InterruptListener]:
    """Run the enclosed block with the interruption listener active.

    Quit signals are always trapped: they dump, cancel and exit.

    Args:
        cancel: Called before exiting on a quit signal
        always_dump: Also trap the dump-only signal (SIGUSR1)
    """
    signals = platform_signals()
    listener = InterruptListener(
        cancel,
        dump_signals=signals[InterruptEvent.DUMP] if always_dump else frozenset(),
        quit_signals=signals[InterruptEvent.DUMP_AND_TERMINATE],
    )
    listener.start()
    try:
        yield listener
    finally:
        listener.stop()
