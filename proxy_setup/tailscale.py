import logging
import os
import tempfile
from typing import List

from proxy_setup.config import TEMP_PREFIX, AppConfig
from proxy_setup.models import ProvisioningStep
from proxy_setup.runner import CommandResult, CommandRunner, run_checked

logger = logging.getLogger(__name__)


def install_tailscale(config: AppConfig, runner: CommandRunner) -> bool:
    """
    Install Tailscale with the official script unless it is already present.

    The script is downloaded to a temp file and executed from there rather
    than piped into a shell, so a failed download is reported as such.

    Returns:
        True if an installation ran, False if Tailscale was already installed.
    """
    if runner.command_exists("tailscale"):
        logger.info("Tailscale is already installed")
        return False
    fd, script_path = tempfile.mkstemp(prefix=f"{TEMP_PREFIX}tailscale_", suffix=".sh", dir=config.temp_dir)
    os.close(fd)
    try:
        run_checked(
            runner,
            ["curl", "-fsSL", config.tailscale_install_url, "-o", script_path],
            "Downloading Tailscale install script",
        )
        run_checked(runner, ["sh", script_path], "Running Tailscale install script")
    finally:
        if os.path.exists(script_path):
            os.remove(script_path)
    logger.info("Tailscale installed")
    return True


def tailscale_steps(config: AppConfig, runner: CommandRunner) -> List[ProvisioningStep]:
    def enable() -> CommandResult:
        return runner.run(["systemctl", "enable", "tailscaled"])

    def start() -> CommandResult:
        return runner.run(["systemctl", "start", "tailscaled"])

    def up() -> CommandResult:
        # Prints a login URL on first use
        return runner.run(["tailscale", "up", "--ssh"], interactive=True)

    return [
        ProvisioningStep(
            "Installing required packages",
            lambda: runner.run(["apt", "install", "-y", "curl"]),
        ),
        ProvisioningStep("Installing Tailscale", lambda: install_tailscale(config, runner)),
        ProvisioningStep("Enabling Tailscale service", enable),
        ProvisioningStep("Starting Tailscale service", start),
        ProvisioningStep("Starting Tailscale with SSH enabled", up, interactive=True),
    ]
