"""kubectl argument-vector builder over the command runner."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .runner import CommandRequest, CommandRunner, DefaultRunner

if TYPE_CHECKING:
    from .config import KubeutilConfig


class Kubectl:
    """Build and run kubectl commands."""

    def __init__(
        self,
        binary: str = "kubectl",
        kubeconfig: str | None = None,
        runner: CommandRunner | None = None,
    ):
        """Initialize kubectl wrapper.

        Args:
            binary: kubectl executable name or path.
            kubeconfig: Path to kubeconfig file.
            runner: Command runner (DefaultRunner if not given).
        """
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.runner: CommandRunner = runner or DefaultRunner()

    @classmethod
    def from_config(
        cls, config: KubeutilConfig, runner: CommandRunner | None = None
    ) -> Kubectl:
        return cls(binary=config.kubectl, kubeconfig=config.kubeconfig, runner=runner)

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        cmd = [self.binary]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        return cmd

    def command(
        self,
        *args: str,
        stdin: bytes | str | None = None,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandRequest:
        return CommandRequest(
            args=(*self._kubectl_cmd(), *args),
            cwd=cwd,
            stdin=stdin,
            env=env,
        )

    async def run(
        self,
        *args: str,
        stdin: bytes | str | None = None,
        logger: Any | None = None,
    ) -> str:
        """Run kubectl with args and return stdout."""
        return await self.runner.run(self.command(*args, stdin=stdin), logger=logger)
