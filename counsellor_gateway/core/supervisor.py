"""Prozess-Supervisor: fängt unbehandelte Fehler an der Prozessgrenze ab,
fährt den Server geordnet herunter und erzwingt notfalls den Exit."""
import asyncio
import logging
import os
import sys
import threading
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """Crash-Sicherheitsnetz für den Gateway-Prozess.

    Bei einem unbehandelten Fehler (Hauptthread, Nebenthread oder
    asyncio-Task) wird der Server gebeten, keine neuen Verbindungen mehr
    anzunehmen. Ist er nach ``shutdown_timeout`` Sekunden nicht beendet,
    wird der Prozess mit Status 1 hart beendet.
    """

    def __init__(self, shutdown_timeout: float = 5.0, exit_func: Callable[[int], Any] = os._exit) -> None:
        self.shutdown_timeout = shutdown_timeout
        self.exit_func = exit_func
        self.server = None
        self.fault: Optional[BaseException] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def faulted(self) -> bool:
        return self.fault is not None

    def install(self, server=None) -> None:
        """Registriert die Hooks für Haupt- und Nebenthreads."""
        self.server = server
        sys.excepthook = self._excepthook
        threading.excepthook = self._thread_excepthook

    def install_loop_handler(self, loop: asyncio.AbstractEventLoop) -> None:
        loop.set_exception_handler(self._loop_exception_handler)

    def _excepthook(self, exc_type, exc, tb) -> None:
        self.handle_fault("Uncaught exception", exc)
        sys.__excepthook__(exc_type, exc, tb)

    def _thread_excepthook(self, args) -> None:
        self.handle_fault(f"Uncaught exception in thread {args.thread.name if args.thread else '?'}", args.exc_value)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is None:
            # Reine Hinweise (z.B. "Task was destroyed but it is pending!") sind nicht fatal.
            loop.default_exception_handler(context)
            return
        self.handle_fault("Unhandled task failure", exc)

    def handle_fault(self, origin: str, exc: BaseException) -> None:
        """Loggt den Fehler, stößt den geordneten Shutdown an und startet den Exit-Timer."""
        logger.critical(f"{origin}: {exc!r}", exc_info=(type(exc), exc, exc.__traceback__))
        with self._lock:
            if self.fault is not None:
                return
            self.fault = exc
            if self.server is not None:
                self.server.should_exit = True
            self._timer = threading.Timer(self.shutdown_timeout, self._force_exit)
            self._timer.daemon = True
            self._timer.start()

    def _force_exit(self) -> None:
        logger.error("Forced server shutdown")
        self.exit_func(1)

    def finish(self) -> int:
        """Nach dem Ende von ``server.serve()``: Exit-Code des Prozesses."""
        if self._timer is not None:
            self._timer.cancel()
        if self.faulted:
            logger.info(f"Server closed due to {self.fault!r}")
            return 1
        return 0
