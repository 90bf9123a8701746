import getpass
import logging
import os
from typing import Callable, List, Optional

import requests

from proxy_setup.certs import CertificateResolver
from proxy_setup.config import AppConfig
from proxy_setup.executor import StepExecutor
from proxy_setup.firewall import FirewallConfigurator
from proxy_setup.inputs import InputSource
from proxy_setup.models import (
    CertificateStrategy,
    FirewallProfile,
    ProvisioningRequest,
    ProvisioningStep,
)
from proxy_setup.nginx import NginxSite, render
from proxy_setup.runner import CommandRunner, run_checked
from proxy_setup.tailscale import tailscale_steps
from proxy_setup.ui import (
    NordColors,
    display_panel,
    print_section,
    print_status_report,
    print_success,
    print_warning,
)

logger = logging.getLogger(__name__)

CLOUDFLARE_NOTE = (
    "Set your SSL/TLS setting to Full on Cloudflare. You will only see the server\n"
    "block if you access it with your domain name. If you visit the site with the\n"
    "address above, you will see the standard NGINX welcome page."
)


def lookup_public_ip(url: str, timeout: int = 10) -> Optional[str]:
    """Ask an address-echo service for this host's public IPv4 address."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Public IP lookup failed: {e}")
        return None
    return response.text.strip() or None


def webroot_owner() -> str:
    return os.environ.get("SUDO_USER") or getpass.getuser()


class Provisioner:
    """
    Turns a ProvisioningRequest into an ordered step plan and runs it.

    The plan is plain data (descriptions plus closures over the runner), so a
    dry run can list it without touching the host.
    """

    def __init__(
        self,
        config: AppConfig,
        runner: CommandRunner,
        source: InputSource,
        executor: Optional[StepExecutor] = None,
        ip_lookup: Optional[Callable[[], Optional[str]]] = None,
    ):
        self.config = config
        self.runner = runner
        self.source = source
        self.executor = executor or StepExecutor()
        self.firewall = FirewallConfigurator(runner)
        self.resolver = CertificateResolver(config, runner, source)
        self.ip_lookup = ip_lookup or (
            lambda: lookup_public_ip(config.ip_echo_url, config.ip_lookup_timeout)
        )

    def _cmd(self, description: str, cmd: List[str], interactive: bool = False) -> ProvisioningStep:
        return ProvisioningStep(
            description,
            lambda: self.runner.run(cmd, interactive=interactive),
            interactive=interactive,
        )

    @staticmethod
    def _cert_step_interactive(request: ProvisioningRequest) -> bool:
        strategy = request.certificate_strategy
        if strategy is CertificateStrategy.PASTED_DATA:
            return True
        return strategy is CertificateStrategy.ACME and not request.acme_email

    def _create_webroot(self, domain: str) -> None:
        webroot = self.config.webroot(domain)
        site_dir = os.path.dirname(webroot)
        os.makedirs(webroot, exist_ok=True)
        owner = webroot_owner()
        run_checked(self.runner, ["chown", "-R", f"{owner}:{owner}", site_dir], "Setting web root owner")
        run_checked(self.runner, ["chmod", "-R", "755", site_dir], "Setting web root permissions")
        logger.info(f"Web root ready at {webroot}")

    def plan(self, request: ProvisioningRequest) -> List[ProvisioningStep]:
        material = self.resolver.material_for(request.certificate_strategy, request.domain)
        site = NginxSite(self.config, self.runner, request.domain)
        rendered = render(request, material)
        strategy = request.certificate_strategy
        profile = request.firewall_profile

        steps = [self._cmd("Updating package lists", ["apt", "update", "-y"])]
        if request.install_vpn_agent:
            steps += tailscale_steps(self.config, self.runner)
        steps += [
            self._cmd("Installing Nginx", ["apt", "install", "-y", "nginx"]),
            ProvisioningStep(
                "Skipping firewall setup"
                if profile is FirewallProfile.NONE
                else f"Applying '{profile.rule}' firewall rule",
                lambda: self.firewall.apply(profile),
            ),
            ProvisioningStep("Creating web root directory", lambda: self._create_webroot(request.domain)),
            ProvisioningStep(
                f"Setting up SSL certificate ({strategy.label.lower()})",
                lambda: self.resolver.resolve(strategy, request),
                interactive=self._cert_step_interactive(request),
            ),
            ProvisioningStep("Creating Nginx configuration", lambda: site.write(rendered)),
            ProvisioningStep("Enabling Nginx site configuration", site.activate),
            ProvisioningStep("Tuning server_names_hash_bucket_size", site.tune_hash_bucket_size),
            self._cmd("Enabling Nginx to start on boot", ["systemctl", "enable", "nginx"]),
            ProvisioningStep("Testing Nginx configuration", site.check),
            self._cmd("Restarting Nginx", ["systemctl", "restart", "nginx"]),
        ]
        return steps

    def run(self, request: ProvisioningRequest) -> int:
        print_section(f"Provisioning {request.domain}")
        try:
            self.executor.run(self.plan(request))
        finally:
            print_status_report(self.executor.outcomes)

        if self.executor.dry_run:
            print_warning("Dry run complete; no changes were made.")
            return 0

        print_section("Installation Complete")
        ip = self.ip_lookup()
        if ip:
            print_success(f"Your server should now be accessible at: {ip}")
        else:
            print_warning("Could not determine the public IP address of this server.")
        display_panel(CLOUDFLARE_NOTE, style=NordColors.FROST_2, title="Next Steps")
        return 0

    def prompt_reboot(self, answer: Optional[bool] = None) -> bool:
        if answer is None:
            answer = self.source.confirm("reboot", "Would you like to reboot now?", default=False)
        if not answer:
            print_warning("Please remember to reboot your system to apply all changes.")
            return False
        logger.info("Rebooting system...")
        run_checked(self.runner, ["systemctl", "reboot"], "Rebooting system")
        return True
