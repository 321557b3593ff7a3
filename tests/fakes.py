"""Test doubles for kubeutil tests.

This module provides:
- FakeRunner: records command requests and replays scripted responses
- command_error: builds a CommandError the way DefaultRunner raises it
- token_body: builds a TokenRequest response body
"""

import asyncio
import json
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from kubeutil.errors import CommandError
from kubeutil.runner import CommandRequest, as_request

# =============================================================================
# Fake runner - replaces the external kubectl process
# =============================================================================


def command_error(
    command: str = "kubectl create --raw /api/v1/namespaces/ns/serviceaccounts/sa/token -f -",
    stderr: str = 'Error from server (NotFound): serviceaccounts "sa" not found',
    stdout: str = "",
    returncode: int = 1,
) -> CommandError:
    """Build a CommandError shaped like a failed kubectl call."""
    cause = subprocess.CalledProcessError(returncode, command.split(), stdout, stderr)
    return CommandError(command, cause=cause, stdout=stdout, stderr=stderr, returncode=returncode)


def token_body(token: str) -> str:
    """TokenRequest response body carrying token."""
    return json.dumps(
        {
            "kind": "TokenRequest",
            "apiVersion": "authentication.k8s.io/v1",
            "status": {"token": token, "expirationTimestamp": "2026-10-17T12:00:00Z"},
        }
    )


@dataclass
class FakeRunner:
    """CommandRunner that replays scripted responses.

    Each response is either stdout (str) or an exception to raise. When the
    script runs out, ``default`` is used.
    """

    responses: list[Any] = field(default_factory=list)
    default: Any = ""
    delay: float = 0.0

    requests: list[CommandRequest] = field(default_factory=list)
    cancelled: int = 0

    async def run(
        self,
        request: CommandRequest | Sequence[str],
        *,
        logger: Any | None = None,
    ) -> str:
        request = as_request(request)
        self.requests.append(request)

        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise

        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)


