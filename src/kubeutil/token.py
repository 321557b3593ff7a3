"""ServiceAccount token polling.

The API server issues ServiceAccount tokens only once the account exists and
its controller has caught up, so a fresh account typically answers the first
few TokenRequests with an error. The poller retries on a fixed tick until a
token is returned or the caller's deadline / cancel event fires.

State machine per call:

    Requesting --ok--> Success
    Requesting --TokenError--> Waiting --tick--> Requesting
    any --deadline or cancel--> Cancelled (raise TokenUnavailableError)
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Coroutine
from typing import Any

from .errors import (
    CommandError,
    EmptyTokenError,
    TokenDeadlineExceeded,
    TokenError,
    TokenParseError,
    TokenRequestCancelled,
    TokenRequestError,
    TokenUnavailableError,
)
from .kubectl import Kubectl
from .logging import ensure_logger

# Default-lifetime token, no audiences.
TOKEN_REQUEST_BODY = {"apiVersion": "authentication.k8s.io/v1", "kind": "TokenRequest"}

DEFAULT_API_PREFIX = "/api/v1"
DEFAULT_POLL_INTERVAL = 2.0


def token_request_path(namespace: str, name: str, api_prefix: str = DEFAULT_API_PREFIX) -> str:
    """Raw API path of the token subresource for a ServiceAccount."""
    return f"{api_prefix}/namespaces/{namespace}/serviceaccounts/{name}/token"


def parse_token_response(body: str) -> str:
    """Extract status.token from a TokenRequest response.

    Raises:
        TokenParseError: Body is not a JSON object with an object ``status``.
        EmptyTokenError: ``status.token`` is missing or empty.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise TokenParseError(f"token response json parse failed: {e} (body={body!r})", body) from e

    if not isinstance(data, dict):
        raise TokenParseError(f"token response is not a JSON object (body={body!r})", body)

    status = data.get("status")
    if status is None:
        status = {}
    if not isinstance(status, dict):
        raise TokenParseError(f"token response status is not an object (body={body!r})", body)

    token = status.get("token")
    if token is None:
        token = ""
    if not isinstance(token, str):
        raise TokenParseError(f"token response status.token is not a string (body={body!r})", body)
    if not token:
        raise EmptyTokenError("token is empty", body)
    return token


class TokenPoller:
    """Poll the API server for a ServiceAccount token."""

    def __init__(
        self,
        kubectl: Kubectl | None = None,
        interval_seconds: float = DEFAULT_POLL_INTERVAL,
        api_prefix: str = DEFAULT_API_PREFIX,
        logger: Any | None = None,
    ):
        """Initialize token poller.

        Args:
            kubectl: kubectl wrapper (plain ``kubectl`` with DefaultRunner if not given).
            interval_seconds: Fixed seconds between attempts.
            api_prefix: Core API prefix for the raw token path.
            logger: Optional structlog logger.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.kubectl = kubectl or Kubectl()
        self.interval_seconds = interval_seconds
        self.api_prefix = api_prefix
        self.logger = logger

    async def request_once(self, namespace: str, name: str) -> str:
        """Issue a single TokenRequest.

        Raises:
            TokenRequestError: kubectl failed.
            TokenParseError: Response had the wrong shape or an empty token.
        """
        path = token_request_path(namespace, name, self.api_prefix)
        try:
            stdout = await self.kubectl.run(
                "create",
                "--raw",
                path,
                "-f",
                "-",
                stdin=json.dumps(TOKEN_REQUEST_BODY),
                logger=self.logger,
            )
        except CommandError as e:
            raise TokenRequestError(f"token request failed (ns={namespace} sa={name}): {e}") from e
        return parse_token_response(stdout)

    async def wait_for_token(
        self,
        namespace: str,
        name: str,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
        on_attempt: Callable[[int, TokenError], None] | None = None,
    ) -> str:
        """Request a token until one is issued or the caller gives up.

        The first attempt is made immediately. Failed attempts are retried on
        a fixed-rate schedule of ``interval_seconds``; at most one request is
        in flight. A deadline or cancel event that fires mid-request kills the
        kubectl process.

        Args:
            namespace: ServiceAccount namespace.
            name: ServiceAccount name.
            timeout: Seconds from now after which polling stops.
            cancel: Event that stops polling when set.
            on_attempt: Optional callback called with (attempt, error) after
                each failed attempt, for progress reporting.

        Returns:
            Non-empty bearer token.

        Raises:
            TokenDeadlineExceeded: Deadline passed first.
            TokenRequestCancelled: Cancel event was set first.
        """
        log = ensure_logger(self.logger)
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        if self._is_done(loop, deadline, cancel):
            raise self._unavailable(namespace, name, None, timeout, cancel)

        next_tick = loop.time() + self.interval_seconds
        last_error: TokenError | None = None
        attempt = 0

        while True:
            attempt += 1
            finished = await self._until_done(
                self.request_once(namespace, name), loop, deadline, cancel
            )
            if finished is None:
                raise self._unavailable(namespace, name, last_error, timeout, cancel) from last_error

            try:
                return finished.result()
            except TokenError as e:
                last_error = e
                log.info("token not ready yet", error=str(e), attempt=attempt)
                if on_attempt:
                    on_attempt(attempt, e)

            if self._is_done(loop, deadline, cancel):
                raise self._unavailable(namespace, name, last_error, timeout, cancel) from last_error

            delay = max(0.0, next_tick - loop.time())
            ticked = await self._until_done(asyncio.sleep(delay), loop, deadline, cancel)
            if ticked is None:
                raise self._unavailable(namespace, name, last_error, timeout, cancel) from last_error

            # Fixed-rate schedule: an overdue tick fires once, missed ones are dropped.
            now = loop.time()
            next_tick += self.interval_seconds
            while next_tick <= now:
                next_tick += self.interval_seconds

    def wait_for_token_sync(
        self,
        namespace: str,
        name: str,
        *,
        timeout: float | None = None,
        on_attempt: Callable[[int, TokenError], None] | None = None,
    ) -> str:
        """Synchronous wrapper for wait_for_token."""
        return asyncio.run(
            self.wait_for_token(namespace, name, timeout=timeout, on_attempt=on_attempt)
        )

    @staticmethod
    def _is_done(
        loop: asyncio.AbstractEventLoop,
        deadline: float | None,
        cancel: asyncio.Event | None,
    ) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        return deadline is not None and loop.time() >= deadline

    @staticmethod
    async def _until_done(
        coro: Coroutine[Any, Any, Any],
        loop: asyncio.AbstractEventLoop,
        deadline: float | None,
        cancel: asyncio.Event | None,
    ) -> asyncio.Task | None:
        """Run coro until it finishes, the deadline passes or cancel is set.

        Returns the finished task, or None if it was interrupted. Helper
        tasks are always cancelled and awaited before returning.
        """
        task = asyncio.ensure_future(coro)
        waiters: set[asyncio.Future] = {task}
        if cancel is not None:
            waiters.add(asyncio.ensure_future(cancel.wait()))
        timeout = None if deadline is None else max(0.0, deadline - loop.time())

        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if task.cancelled():
            return None
        return task

    @staticmethod
    def _unavailable(
        namespace: str,
        name: str,
        last_error: TokenError | None,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> TokenUnavailableError:
        error_cls: type[TokenUnavailableError]
        if cancel is not None and cancel.is_set():
            error_cls, reason = TokenRequestCancelled, "cancelled"
        else:
            error_cls, reason = TokenDeadlineExceeded, f"deadline of {timeout}s exceeded"

        target = f"serviceaccount {namespace}/{name}"
        if last_error is None:
            return error_cls(f"token for {target} not issued: {reason}")
        return error_cls(f"token for {target} not issued ({reason}): {last_error}", last_error)


async def service_account_token(
    namespace: str,
    name: str,
    *,
    kubectl: Kubectl | None = None,
    logger: Any | None = None,
    timeout: float | None = None,
    cancel: asyncio.Event | None = None,
    interval_seconds: float = DEFAULT_POLL_INTERVAL,
) -> str:
    """Request a token for a ServiceAccount, retrying until ready.

    Shortcut for ``TokenPoller(...).wait_for_token(...)``.
    """
    poller = TokenPoller(kubectl=kubectl, interval_seconds=interval_seconds, logger=logger)
    return await poller.wait_for_token(namespace, name, timeout=timeout, cancel=cancel)
