# segmenter/SessionState.py
"""
Lifecycle of one capture session: starting, running, paused, shutdown.

The pipeline drives the session, and the audio source, engine and transcriber
observe it. Pausing stops capture and discards the open utterance. Resuming
starts a fresh stream. Shutdown is terminal and flushes.

Tests for this module:
- tests/test_session_state.py
"""
import threading
from typing import Callable, Dict, List, Set

StateObserver = Callable[[str, str], None]


class SessionState:
    """
    Thread-safe capture session state with (old_state, new_state) observers.

    set_state() is strict and raises on an illegal move. pause(), resume()
    and shutdown() are the control-surface versions: they report whether
    anything changed instead of raising, because a user pressing pause twice
    or Ctrl+C during shutdown is not an error.

    Observers run on the calling thread after the lock is released, in
    registration order.
    """

    TRANSITIONS: Dict[str, Set[str]] = {
        'starting': {'running', 'shutdown'},
        'running': {'paused', 'shutdown'},
        'paused': {'running', 'shutdown'},
        'shutdown': set()
    }

    def __init__(self) -> None:
        self._state = 'starting'
        self._lock = threading.Lock()
        self._observers: List[StateObserver] = []
        self._ended = threading.Event()

    def get_state(self) -> str:
        with self._lock:
            return self._state

    def register_observer(self, observer: StateObserver) -> None:
        with self._lock:
            self._observers.append(observer)

    def set_state(self, new_state: str) -> None:
        """Move to new_state and notify observers.

        Raises:
            ValueError: new_state is not reachable from the current state
        """
        if new_state not in self.TRANSITIONS:
            raise ValueError(f"Unknown session state: {new_state}")
        if not self._move(set(self.TRANSITIONS), new_state):
            raise ValueError(f"Invalid state transition: {self.get_state()} -> {new_state}")

    def pause(self) -> bool:
        """Pause a running session. Returns False if it was not running."""
        return self._move({'running'}, 'paused')

    def resume(self) -> bool:
        """Resume a paused session. Returns False if it was not paused."""
        return self._move({'paused'}, 'running')

    def shutdown(self) -> bool:
        """End the session. Returns False if it had already ended."""
        return self._move({'starting', 'running', 'paused'}, 'shutdown')

    def wait_for_shutdown(self, timeout: float | None = None) -> bool:
        """Block until the session ends. Returns False on timeout."""
        return self._ended.wait(timeout)

    def _move(self, allowed_from: Set[str], new_state: str) -> bool:
        with self._lock:
            old_state = self._state
            if old_state not in allowed_from or new_state not in self.TRANSITIONS[old_state]:
                return False
            self._state = new_state
            observers = list(self._observers)

        try:
            for observer in observers:
                observer(old_state, new_state)
        finally:
            if new_state == 'shutdown':
                # released only once every component has stopped and flushed
                self._ended.set()
        return True
