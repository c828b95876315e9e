"""
Cooperative cancellation for long-running backtests.
"""

from threading import Event

from loguru import logger

from dnbacktest.core.exceptions.backtest import BacktestCancelledError


class CancellationToken:
    """Thread-safe cancellation flag checked at loop and I/O boundaries.

    A token may be shared between the caller (e.g. an API request handler)
    and any number of backtests; cancelling it stops all of them at their
    next check.
    """

    def __init__(self) -> None:
        self._event = Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        """Request cancellation."""
        self._reason = reason
        self._event.set()
        logger.info(f"Cancellation requested{': ' + reason if reason else ''}")

    @property
    def cancelled(self) -> bool:
        """Check whether cancellation was requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self, where: str = "backtest") -> None:
        """Raise BacktestCancelledError if cancellation was requested.

        Args:
            where: Description of the current stage, included in the error
        """
        if self._event.is_set():
            raise BacktestCancelledError(where)


def check_cancelled(token: CancellationToken | None, where: str) -> None:
    """Check an optional token."""
    if token is not None:
        token.raise_if_cancelled(where)
