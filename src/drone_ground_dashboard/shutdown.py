"""Signal-driven shutdown coordination for the dashboard runtime."""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType
from typing import Any, Callable, Iterable, List, Optional, Tuple, cast

LOGGER = logging.getLogger(__name__)

ShutdownCallback = Callable[[], None]


class GracefulShutdown:
    """Coordinate signal handling and shutdown callbacks.

    Callbacks run once, in registration order, on a daemon thread. A failing
    callback is logged and the remaining ones still run.
    """

    def __init__(self, *, signals_to_handle: Optional[Iterable[int]] = None) -> None:
        if signals_to_handle is None:
            default_signals = [signal.SIGINT, signal.SIGTERM]
            if hasattr(signal, "SIGHUP"):
                default_signals.append(getattr(signal, "SIGHUP"))
            signals_to_handle = default_signals

        self._signals = [sig for sig in signals_to_handle if isinstance(sig, int)]
        self._event = threading.Event()
        self._done = threading.Event()
        self._callbacks: List[Tuple[str, ShutdownCallback]] = []
        self._previous_handlers: dict[int, Any] = {}
        self._lock = threading.RLock()
        self._callbacks_invoked = False
        self._reason: Optional[str] = None

    def __enter__(self) -> "GracefulShutdown":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.restore()
        if exc_type is KeyboardInterrupt:
            self.request_shutdown("用户中断 (Ctrl+C)")
            return True
        return False

    @property
    def triggered(self) -> bool:
        """Whether a shutdown has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def install(self) -> None:
        """Install signal handlers for coordinated shutdown."""
        with self._lock:
            for sig in self._signals:
                try:
                    self._previous_handlers[sig] = signal.getsignal(sig)
                    signal.signal(sig, self._handle_signal)
                except (OSError, RuntimeError, ValueError) as exc:  # pragma: no cover - platform specific
                    LOGGER.debug("跳过信号 %s: %s", sig, exc)

    def restore(self) -> None:
        """Restore previous signal handlers."""
        with self._lock:
            for sig, handler in self._previous_handlers.items():
                try:
                    signal.signal(sig, cast(signal.Handlers, handler))
                except (OSError, RuntimeError, ValueError):  # pragma: no cover - platform specific
                    LOGGER.debug("恢复信号 %s 失败", sig)
            self._previous_handlers.clear()

    def register_callback(self, callback: ShutdownCallback, *, name: Optional[str] = None) -> None:
        """Register a callback run when shutdown is requested.

        Callbacks registered after the shutdown already ran are started
        immediately on their own thread.
        """
        label = name or getattr(callback, "__name__", repr(callback))
        with self._lock:
            self._callbacks.append((label, callback))
            run_late = self._callbacks_invoked
        if run_late:
            threading.Thread(
                target=self._invoke_all,
                args=([(label, callback)],),
                name="shutdown-callback",
                daemon=True,
            ).start()
        elif self._event.is_set():
            self._run_callbacks_async()

    def request_shutdown(self, reason: str) -> None:
        """Trigger the shutdown sequence if not already triggered."""
        with self._lock:
            if not self._event.is_set():
                LOGGER.info("触发关闭：%s", reason)
                self._reason = reason
                self._event.set()
        self._run_callbacks_async()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown is requested or *timeout* elapses."""
        return self._event.wait(timeout)

    def wait_for_callbacks(self, timeout: Optional[float] = None) -> bool:
        """Block until the registered callbacks have finished running."""
        return self._done.wait(timeout)

    def _handle_signal(self, signum: int, _frame: Optional[FrameType]) -> None:  # pragma: no cover - signal handler
        try:
            name = signal.Signals(signum).name
        except ValueError:  # pragma: no cover - unknown signal number
            name = str(signum)
        self.request_shutdown(f"收到系统信号 {name}")

    def _run_callbacks_async(self) -> None:
        with self._lock:
            if self._callbacks_invoked or not self._callbacks:
                if not self._callbacks:
                    self._done.set()
                return
            self._callbacks_invoked = True
            callbacks = list(self._callbacks)
        threading.Thread(
            target=self._invoke_all,
            args=(callbacks,),
            name="shutdown-callbacks",
            daemon=True,
        ).start()

    def _invoke_all(self, callbacks: List[Tuple[str, ShutdownCallback]]) -> None:
        try:
            for label, callback in callbacks:
                try:
                    callback()
                except Exception:  # noqa: BLE001
                    LOGGER.exception("执行关闭回调 %s 失败", label)
        finally:
            self._done.set()


__all__ = ["GracefulShutdown", "ShutdownCallback"]
