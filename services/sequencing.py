import itertools
import threading


class RequestSequencer:
    """Hands out increasing tokens; only the newest one may apply its result.

    A fetch started earlier can finish later. Callers take a token before
    fetching and check ``accept`` before applying, so a slow stale response
    never overwrites a fresher one.
    """

    def __init__(self, start: int = 0):
        self._counter = itertools.count(start + 1)
        self._latest = start
        self._lock = threading.Lock()

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        with self._lock:
            self._latest = next(self._counter)
            return self._latest

    def accept(self, token: int) -> bool:
        return token == self._latest
