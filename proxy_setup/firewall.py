import logging
from typing import Any

from proxy_setup.models import FirewallProfile
from proxy_setup.runner import CommandRunner, run_checked

logger = logging.getLogger(__name__)

UFW = "ufw"


class FirewallConfigurator:
    """Applies one of the nginx ufw application profiles and enables ufw."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def apply(self, profile: Any) -> FirewallProfile:
        # Parse before touching the host; unknown values never fall back to an open rule.
        profile = FirewallProfile.parse(profile)
        if profile is FirewallProfile.NONE:
            logger.info("Skipping firewall setup")
            return profile

        rule = profile.rule
        logger.info(f"Applying '{rule}' firewall rule...")
        run_checked(self.runner, [UFW, "allow", rule], f"Allowing '{rule}' in ufw")
        run_checked(self.runner, [UFW, "--force", "enable"], "Enabling ufw")
        run_checked(self.runner, [UFW, "reload"], "Reloading ufw")

        status = self.runner.run([UFW, "status"])
        if status.ok:
            logger.info(f"Firewall status:\n{status.stdout.strip()}")
        return profile
