#!/usr/bin/env python3
"""
proxy-setup

Bootstrap a single host as a TLS-terminating nginx reverse proxy:

  - Optionally installs Tailscale and brings it up with SSH enabled
  - Installs nginx and applies a ufw application profile
  - Installs, pastes, or requests (Certbot) the TLS certificate
  - Writes and enables the reverse-proxy server block
  - Tests the configuration and restarts nginx

Usage:
  Run with root privileges:
      sudo proxy-setup
      sudo proxy-setup --domain example.com --upstream http://backend:3000 \\
          --firewall full --cert-strategy existing \\
          --cert-file origin.pem --key-file private.pem --non-interactive
"""

import atexit
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional

import click

from proxy_setup.config import TEMP_PREFIX, VERSION, AppConfig
from proxy_setup.errors import SetupError
from proxy_setup.executor import StepExecutor
from proxy_setup.inputs import InputCollector, PromptInput, ScriptedInput, parse_bool
from proxy_setup.logging_setup import setup_logging
from proxy_setup.runner import SubprocessRunner
from proxy_setup.ui import console, print_error, print_header, print_warning
from proxy_setup.workflow import Provisioner

logger = logging.getLogger("proxy_setup")

FIREWALL_CHOICES = ["full", "http", "https", "none", "1", "2", "3", "4"]
STRATEGY_CHOICES = ["existing", "paste", "acme", "1", "2", "3"]

_temp_dir: Optional[str] = None


def cleanup() -> None:
    """Remove temp files left behind by an interrupted run."""
    temp_dir = _temp_dir or AppConfig().temp_dir
    try:
        names = os.listdir(temp_dir)
    except OSError:
        return
    for fname in names:
        if fname.startswith(TEMP_PREFIX):
            try:
                os.remove(os.path.join(temp_dir, fname))
            except OSError as e:
                logger.debug(f"Could not remove {fname}: {e}")


def signal_handler(signum: int, frame: Any) -> None:
    sig_name = signal.Signals(signum).name
    print_warning(f"Process interrupted by {sig_name}. Cleaning up...")
    cleanup()
    sys.exit(130 if signum == signal.SIGINT else 143 if signum == signal.SIGTERM else 128 + signum)


def check_root() -> None:
    if os.geteuid() != 0:
        raise SetupError(f"Script must be run as root. Run with: sudo {os.path.basename(sys.argv[0])}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=VERSION, prog_name="proxy-setup")
@click.option("--domain", help="Public domain name (e.g., example.com)")
@click.option("--upstream", help="Full upstream service address (e.g., http://backend:3000)")
@click.option("--vpn/--no-vpn", "install_vpn", default=None, help="Install Tailscale")
@click.option("--firewall", type=click.Choice(FIREWALL_CHOICES, case_sensitive=False), help="ufw profile to apply")
@click.option(
    "--cert-strategy",
    type=click.Choice(STRATEGY_CHOICES, case_sensitive=False),
    help="How to obtain the TLS certificate",
)
@click.option("--cert-file", type=click.Path(), help="Existing certificate file")
@click.option("--key-file", type=click.Path(), help="Existing private key file")
@click.option("--www/--no-www", "include_www", default=None, help="Also serve www.<domain>")
@click.option("--acme-email", help="Register Certbot non-interactively with this email")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="JSON config file")
@click.option("--log-file", help="Log file location")
@click.option("--non-interactive", is_flag=True, help="Run without prompts")
@click.option("--dry-run", is_flag=True, help="List the steps without running them")
@click.option("--reboot/--no-reboot", default=None, help="Reboot when finished")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(
    domain: Optional[str],
    upstream: Optional[str],
    install_vpn: Optional[bool],
    firewall: Optional[str],
    cert_strategy: Optional[str],
    cert_file: Optional[str],
    key_file: Optional[str],
    include_www: Optional[bool],
    acme_email: Optional[str],
    config_path: Optional[str],
    log_file: Optional[str],
    non_interactive: bool,
    dry_run: bool,
    reboot: Optional[bool],
    debug: bool,
) -> None:
    """
    Provision this host as an nginx reverse proxy for one domain.

    Values not given as options are asked for interactively.
    """
    global _temp_dir
    print_header()
    try:
        config, preset = AppConfig.load(config_path)
        if log_file:
            config.log_file = log_file
        _temp_dir = config.temp_dir
        setup_logging(config.log_file, debug=debug, max_size=config.max_log_size)
        if dry_run:
            print_warning("Dry run: no changes will be made to this host.")
        else:
            check_root()

        flags: Dict[str, Any] = {
            "domain": domain,
            "upstream": upstream,
            "install_vpn": install_vpn,
            "firewall": firewall,
            "cert_strategy": cert_strategy,
            "cert_file": cert_file,
            "key_file": key_file,
            "include_www": include_www,
            "acme_email": acme_email,
            "reboot": reboot,
        }
        preset.update({k: v for k, v in flags.items() if v is not None})

        if non_interactive:
            source = ScriptedInput(answers=preset, stream=sys.stdin)
        else:
            source = PromptInput()
        request = InputCollector(source, preset).collect()

        provisioner = Provisioner(
            config,
            SubprocessRunner(),
            source,
            executor=StepExecutor(dry_run=dry_run),
        )
        provisioner.run(request)
        if not dry_run:
            answer = preset.get("reboot")
            provisioner.prompt_reboot(None if answer is None else parse_bool(answer))
    except SetupError as e:
        print_error(str(e))
        logger.debug("Run aborted", exc_info=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print_warning("Operation cancelled by user.")
        sys.exit(130)


def run() -> None:
    """Console entry point: installs signal handlers and cleanup, then runs."""
    atexit.register(cleanup)
    for s in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        signal.signal(s, signal_handler)
    try:
        main()
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    run()
