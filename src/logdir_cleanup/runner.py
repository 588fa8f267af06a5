"""Synchronous or background execution of cleaning passes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from enum import Enum
from typing import Any


class WaitPolicy(Enum):
    """Whether the caller waits for a cleaning pass to finish."""

    NEVER = "never"  # Run in the background
    FIRST_TIME_ONLY = "first_time_only"  # Wait only for the first pass of the process
    ALWAYS = "always"  # Run on the calling thread

    @classmethod
    def parse(cls, value: WaitPolicy | str) -> WaitPolicy:
        """Parse a policy token such as ``"always"``, ``"FirstTimeOnly"`` or ``"first-time-only"``.

        Raises:
            ValueError: If the token is not a known policy.

        """
        if isinstance(value, cls):
            return value
        token = str(value).strip().replace("-", "_").lower()
        if token == "firsttimeonly":
            token = cls.FIRST_TIME_ONLY.value
        try:
            return cls(token)
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"Invalid wait_policy: {value!r} (expected one of: {choices})") from None


class TaskRunner:
    """Runs an action either inline or on its own background thread."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def run(self, action: Callable[[], Any], wait: WaitPolicy) -> Future[Any]:
        """Run ``action`` according to ``wait``.

        With ``WaitPolicy.NEVER`` the action starts on a new thread and this
        returns immediately. Any other policy runs it before returning. Either
        way the outcome, including an exception, ends up in the returned future.

        Args:
            action: Work to run.
            wait: Wait policy already resolved for this call.

        Returns:
            Future completed with the action's result.

        """
        future: Future[Any] = Future()
        future.set_running_or_notify_cancel()

        if wait is WaitPolicy.NEVER:
            thread = threading.Thread(
                target=self._run_into,
                args=(action, future),
                name="logdir-cleanup",
                daemon=True,
            )
            thread.start()
        else:
            self._run_into(action, future)

        return future

    def _run_into(self, action: Callable[[], Any], future: Future[Any]) -> None:
        try:
            result = action()
        except Exception as e:
            self.logger.error("Cleaning task failed: %s", e, exc_info=True)
            future.set_exception(e)
        else:
            future.set_result(result)
