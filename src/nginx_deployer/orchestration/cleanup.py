"""Guaranteed release of transient local resources."""
import logging
import shutil
import signal
import tempfile
import threading
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None))
    if sig is not None
)


class CleanupHandler:
    """
    Scoped finalizer for a deployment run.

    Use as a context manager. Callbacks registered with :meth:`register` run
    in reverse order when the block exits, whether it finished normally,
    raised, or was interrupted. SIGTERM and SIGHUP are turned into
    ``SystemExit`` while the block is active so they unwind through the
    same path as Ctrl-C.

    Cleanup never raises: callback failures are logged and the original
    exit cause is left untouched.
    """

    def __init__(self):
        self._callbacks: List[Tuple[str, Callable[[], None]]] = []
        self._previous_handlers = {}
        self._closed = False

    def __enter__(self) -> "CleanupHandler":
        self._install_signal_handlers()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def register(self, callback: Callable[[], None], description: str = "") -> None:
        self._callbacks.append((description or getattr(callback, "__name__", "cleanup"), callback))

    def temporary_directory(self, prefix: str = "nginx-deployer-") -> str:
        """Create a private temp directory that is removed at exit."""
        path = tempfile.mkdtemp(prefix=prefix)
        self.register(lambda: shutil.rmtree(path, ignore_errors=True), f"remove {path}")
        logger.debug(f"Created temporary directory {path}")
        return path

    def close(self) -> None:
        """Run every registered callback once. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        try:
            while self._callbacks:
                description, callback = self._callbacks.pop()
                try:
                    callback()
                    logger.debug(f"Cleanup: {description}")
                except Exception as e:
                    logger.warning(f"Cleanup step '{description}' failed: {e}")
        finally:
            self._restore_signal_handlers()

    def _handle_signal(self, signum, frame):
        logger.warning(f"Received signal {signum}, cleaning up before exit")
        raise SystemExit(128 + signum)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread; signal handlers not installed")
            return
        for sig in TERMINATION_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            sig, handler = self._previous_handlers.popitem()
            try:
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
            except (ValueError, OSError) as e:
                logger.warning(f"Could not restore handler for signal {sig}: {e}")
