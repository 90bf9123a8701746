import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from proxy_setup.errors import StepError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Capability for executing external commands.

    Provisioning code never calls subprocess directly; it goes through a
    runner so the same workflow can run against a recording fake in tests.
    """

    def run(
        self,
        cmd: List[str],
        input_text: Optional[str] = None,
        interactive: bool = False,
    ) -> CommandResult:
        raise NotImplementedError

    def command_exists(self, name: str) -> bool:
        raise NotImplementedError


class SubprocessRunner(CommandRunner):
    """Runs commands on the local host with ``subprocess.run``."""

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env

    def run(
        self,
        cmd: List[str],
        input_text: Optional[str] = None,
        interactive: bool = False,
    ) -> CommandResult:
        cmd_str = " ".join(cmd)
        logger.debug(f"Executing: {cmd_str}")
        # Interactive commands (certbot, tailscale up) talk to the operator directly.
        result = subprocess.run(
            cmd,
            env=self.env or os.environ.copy(),
            input=input_text,
            capture_output=not interactive,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.debug(f"Command failed (code {result.returncode}): {cmd_str}")
            if result.stderr:
                logger.debug(f"Error: {result.stderr.strip()}")
        return CommandResult(
            args=list(cmd),
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def command_exists(self, name: str) -> bool:
        return shutil.which(name) is not None


def run_checked(
    runner: CommandRunner,
    cmd: List[str],
    description: str,
    input_text: Optional[str] = None,
    interactive: bool = False,
) -> CommandResult:
    """Run a command and raise StepError when it exits non-zero."""
    result = runner.run(cmd, input_text=input_text, interactive=interactive)
    if not result.ok:
        raise StepError(description, result.returncode, result.stderr.strip())
    return result
