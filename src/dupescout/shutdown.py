"""Cooperative shutdown on SIGINT and SIGTERM.

The ShutdownCoordinator never interrupts running work. It only flips a CancellationFlag,
which the tree walkers and pair producers consult before starting each unit of work, so
a search that receives a signal stops scheduling new work and finishes what is already
running.
"""
import logging
import signal
import threading

logger = logging.getLogger(__name__)


class CancellationFlag:
    """Monotonic, thread-safe flag that moves once from running to shutting down."""

    def __init__(self):
        self._event = threading.Event()
        # Reentrant: signal handlers run on the main thread, possibly inside set()
        self._lock = threading.RLock()

    def set(self) -> bool:
        """Set the flag.

        Returns:
            True if this call set the flag, False if it was already set
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()


class ShutdownCoordinator:
    """Turns interrupt signals into a cooperative shutdown for the lifetime of one search.

    Use as a context manager around the search. Handlers are installed with signal.signal()
    and flip the flag synchronously, so a walk that keeps the event loop busy still sees
    the shutdown at its next entry. The previous handlers are restored on exit. Handlers
    can only be installed from the main thread; elsewhere, or with enabled=False, the
    coordinator only offers trigger().
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, flag: CancellationFlag | None = None, enabled: bool = True):
        self._flag = flag if flag is not None else CancellationFlag()
        self._enabled = enabled
        self._replaced_handlers: dict[int, object] = {}

    @property
    def flag(self) -> CancellationFlag:
        return self._flag

    @property
    def installed(self) -> bool:
        return bool(self._replaced_handlers)

    def trigger(self, signum: int | None = None):
        """Enter shutdown. Only the first call has an effect."""
        name = signal.Signals(signum).name if signum is not None else "shutdown request"
        if self._flag.set():
            logger.warning(f"Received {name}, shutting down after current workers are done...")
        else:
            logger.debug(f"Received {name} while already shutting down")

    def _handle_signal(self, signum, frame):
        self.trigger(signum)

    def __enter__(self):
        if not self._enabled:
            return self

        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers are not installed")
            return self

        for sig in self.SIGNALS:
            self._replaced_handlers[sig] = signal.signal(sig, self._handle_signal)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for sig, previous in self._replaced_handlers.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)

        self._replaced_handlers.clear()
