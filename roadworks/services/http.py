"""HTTP plumbing and the retry loop used by external map service clients."""

from __future__ import annotations

from dataclasses import dataclass
from http import client as http_client
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar
from urllib import error, request

from roadworks.exceptions import RetryCancelled, TransportError

USER_AGENT = "Roadworks/1.0 (road assignment engine)"

logger = logging.getLogger(__name__)

T = TypeVar("T")


def request_json(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 10.0) -> Any:
    """GET ``url`` and decode the JSON body, raising :class:`TransportError` on any failure."""

    req = request.Request(url, headers={"User-Agent": USER_AGENT, **(headers or {})})
    try:
        with request.urlopen(req, timeout=timeout) as response:
            data = response.read().decode("utf-8")
    except error.HTTPError as exc:
        raise TransportError(f"HTTP {exc.code}: {exc.reason}") from exc
    except (OSError, http_client.HTTPException) as exc:
        raise TransportError(str(exc) or exc.__class__.__name__) from exc
    except UnicodeDecodeError as exc:
        raise TransportError("External service returned a body that is not UTF-8.") from exc

    try:
        return json.loads(data)
    except ValueError as exc:
        raise TransportError("External service returned an invalid JSON body.") from exc


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    delay_seconds: float = 1.0


class RetryingClient:
    """Call a function until it succeeds or the retry policy runs out.

    Only :class:`TransportError` is retried. Between attempts the client waits
    a fixed delay; a caller-supplied monotonic ``deadline`` or ``cancel_event``
    stops the loop with :class:`RetryCancelled`.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.clock = clock

    def call(
        self,
        fn: Callable[..., T],
        *args: Any,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        **kwargs: Any,
    ) -> T:
        attempts = self.policy.attempts
        attempt = 1
        while True:
            self._check_cancelled(deadline, cancel_event)
            try:
                return fn(*args, **kwargs)
            except TransportError as exc:
                logger.warning("Attempt %s/%s failed: %s", attempt, attempts, exc)
                if attempt >= attempts:
                    raise
            self._pause(deadline, cancel_event)
            attempt += 1

    def _check_cancelled(self, deadline: Optional[float], cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RetryCancelled("Request cancelled by caller.")
        if deadline is not None and self.clock() >= deadline:
            raise RetryCancelled("Request deadline exceeded.")

    def _pause(self, deadline: Optional[float], cancel_event: Optional[threading.Event]) -> None:
        delay = self.policy.delay_seconds
        if deadline is not None and deadline - self.clock() <= delay:
            raise RetryCancelled("Request deadline would pass before the next attempt.")
        if cancel_event is not None:
            if cancel_event.wait(delay):
                raise RetryCancelled("Request cancelled by caller.")
        elif delay > 0:
            self.sleep(delay)
