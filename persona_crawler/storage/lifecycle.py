from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import sys
import threading
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

_SIGNALS = tuple(s for s in (signal.SIGINT, signal.SIGTERM) if s is not None)


class RunLifecycle:
    """
    Process-level cleanup hooks for one run.

    Installed when a workspace is initialized and removed when it is cleaned
    up, so several runs in one process never stack handlers. Covers normal
    interpreter exit, SIGINT/SIGTERM, uncaught exceptions and asyncio errors
    nobody retrieved.
    """

    def __init__(
        self,
        on_cleanup: Callable[[], None],
        on_retain: Callable[[], None],
        *,
        retain_on_error: bool = False,
        exit_func: Callable[[int], Any] = os._exit,
    ) -> None:
        self._on_cleanup = on_cleanup
        self._on_retain = on_retain
        self.retain_on_error = retain_on_error
        self._exit = exit_func
        self._installed = False
        self._previous_signals: Dict[int, Any] = {}
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Optional[Callable[..., Any]] = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            return
        atexit.register(self._handle_exit)

        if threading.current_thread() is threading.main_thread():
            for sig in _SIGNALS:
                self._previous_signals[sig] = signal.signal(sig, self._handle_signal)
        else:
            logger.debug("Not on the main thread; signal cleanup hooks skipped")

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._handle_uncaught

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop is not None:
            self._previous_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._handle_loop_error)

        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        atexit.unregister(self._handle_exit)

        for sig, previous in self._previous_signals.items():
            try:
                signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
            except ValueError:
                # Only the main thread may touch signal handlers.
                logger.debug("Could not restore handler for signal %s", sig)
        self._previous_signals.clear()

        if sys.excepthook == self._handle_uncaught and self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
        self._previous_excepthook = None

        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_loop_handler = None

        self._installed = False

    # ---- Handlers ------------------------------------------------------------

    def _handle_exit(self) -> None:
        self._on_cleanup()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        logger.info("Received %s, cleaning up temporary storage", signal.Signals(signum).name)
        self._on_cleanup()
        self.uninstall()
        self._exit(128 + signum)

    def _handle_uncaught(self, exc_type, exc, tb) -> None:
        logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))
        self._fatal()
        previous = self._previous_excepthook
        self.uninstall()
        if previous is not None and previous is not self._handle_uncaught:
            previous(exc_type, exc, tb)
        self._exit(1)

    def _handle_loop_error(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is None:
            # Plain warnings from the loop (slow callbacks, unclosed transports).
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        logger.critical("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)
        self._fatal()
        self.uninstall()
        self._exit(1)

    def _fatal(self) -> None:
        if self.retain_on_error:
            self._on_retain()
        else:
            self._on_cleanup()
