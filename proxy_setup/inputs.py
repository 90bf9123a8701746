"""
Operator input.

The workflow never reads the terminal directly. It asks an ``InputSource``,
which is either the interactive rich prompt or a scripted source fed from
CLI flags, a config file or a test.
"""

import logging
import os
import re
import sys
from typing import Any, Dict, IO, List, Mapping, Optional, Tuple

from rich.prompt import Confirm, Prompt

from proxy_setup.errors import ValidationError
from proxy_setup.models import (
    HOSTNAME_RE,
    CertificateStrategy,
    FirewallProfile,
    ProvisioningRequest,
)
from proxy_setup.ui import NordColors, console

logger = logging.getLogger(__name__)

PEM_BLOCK_RE = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n.*?-----END (?P=label)-----[ \t]*\r?\n?", re.DOTALL
)
CERT_LABELS = {"CERTIFICATE", "TRUSTED CERTIFICATE"}
KEY_LABELS = {"EC PARAMETERS"}
YES_VALUES = {"y", "yes", "true", "1", "on"}
NO_VALUES = {"n", "no", "false", "0", "off", ""}
PASTED_CERT = "cert_data"
PASTED_KEY = "key_data"


def read_to_eof(stream: IO[str]) -> str:
    """Read everything up to end-of-input (Ctrl+D on a terminal)."""
    return stream.read()


def split_pem_bundle(text: str) -> Tuple[str, str]:
    """
    Split PEM text into its certificate chain and its private key.

    Certificate blocks keep their order (leaf first, then intermediates).
    Private key blocks go to the key together with any ``EC PARAMETERS``
    block. Anything else is dropped with a warning.
    """
    certs: List[str] = []
    keys: List[str] = []
    for match in PEM_BLOCK_RE.finditer(text):
        block = match.group(0).rstrip() + "\n"
        label = match.group("label")
        if label in CERT_LABELS:
            certs.append(block)
        elif label in KEY_LABELS or label.endswith("PRIVATE KEY"):
            keys.append(block)
        else:
            logger.warning(f"Ignoring unexpected PEM block: {label}")
    return "".join(certs), "".join(keys)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    key = str(value).strip().lower()
    if key in YES_VALUES:
        return True
    if key in NO_VALUES:
        return False
    raise ValidationError(f"Expected yes or no, got {value!r}")


class InputSource:
    def ask(self, key: str, prompt: str, default: Optional[str] = None) -> str:
        raise NotImplementedError

    def confirm(self, key: str, prompt: str, default: bool = False) -> bool:
        raise NotImplementedError

    def read_block(self, key: str, prompt: str) -> str:
        raise NotImplementedError


class PromptInput(InputSource):
    """Interactive prompts on the themed console."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdin

    def ask(self, key: str, prompt: str, default: Optional[str] = None) -> str:
        answer = Prompt.ask(
            f"[bold {NordColors.FROST_2}]{prompt}[/]", default=default, console=console
        )
        return (answer or "").strip()

    def confirm(self, key: str, prompt: str, default: bool = False) -> bool:
        return Confirm.ask(
            f"[bold {NordColors.FROST_2}]{prompt}[/]", default=default, console=console
        )

    def read_block(self, key: str, prompt: str) -> str:
        console.print(f"[bold {NordColors.FROST_2}]{prompt}[/]")
        console.print(f"[{NordColors.FROST_3}](press Ctrl+D on an empty line when done)[/]")
        return read_to_eof(self.stream)


class ScriptedInput(InputSource):
    """
    Non-interactive source backed by a mapping of answers.

    Any key without an answer is a ValidationError, so unattended runs fail
    fast instead of blocking on a prompt. Block reads come from ``blocks``
    first; otherwise ``stream`` is read whole once and split into the
    certificate chain and the private key.
    """

    def __init__(
        self,
        answers: Optional[Mapping[str, Any]] = None,
        blocks: Optional[Mapping[str, str]] = None,
        stream: Optional[IO[str]] = None,
    ):
        self.answers: Dict[str, Any] = dict(answers or {})
        self.blocks: Dict[str, str] = dict(blocks or {})
        self.stream = stream

    def _lookup(self, key: str, prompt: str) -> Any:
        if key not in self.answers or self.answers[key] is None:
            raise ValidationError(f"No value supplied for '{key}' ({prompt})")
        return self.answers[key]

    def ask(self, key: str, prompt: str, default: Optional[str] = None) -> str:
        if self.answers.get(key) is None and default is not None:
            return default
        return str(self._lookup(key, prompt)).strip()

    def confirm(self, key: str, prompt: str, default: bool = False) -> bool:
        if self.answers.get(key) is None:
            return default
        return parse_bool(self.answers[key])

    def read_block(self, key: str, prompt: str) -> str:
        if key not in self.blocks and self.stream is not None:
            # A piped stream carries certificate chain and key together
            cert_text, key_text = split_pem_bundle(read_to_eof(self.stream))
            self.blocks.setdefault(PASTED_CERT, cert_text)
            self.blocks.setdefault(PASTED_KEY, key_text)
            self.stream = None
        if key in self.blocks:
            return self.blocks[key]
        raise ValidationError(f"No data supplied for '{key}' ({prompt})")


def normalize_upstream(address: str) -> str:
    """Prefix a scheme when the operator typed a bare host:port."""
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", address):
        return f"http://{address}"
    return address


class InputCollector:
    """Builds a ProvisioningRequest from presets and operator answers."""

    def __init__(self, source: InputSource, preset: Optional[Mapping[str, Any]] = None):
        self.source = source
        self.preset: Dict[str, Any] = {
            k: v for k, v in dict(preset or {}).items() if v is not None
        }

    def _value(self, key: str, prompt: str, default: Optional[str] = None) -> str:
        if key in self.preset:
            return str(self.preset[key]).strip()
        return self.source.ask(key, prompt, default)

    def _flag(self, key: str, prompt: str, default: bool = False) -> bool:
        if key in self.preset:
            return parse_bool(self.preset[key])
        return self.source.confirm(key, prompt, default)

    def _menu(self, key: str, title: str, labels: List[str]) -> str:
        if key in self.preset:
            return str(self.preset[key])
        console.print(f"\n[bold {NordColors.FROST_2}]{title}[/]")
        for i, label in enumerate(labels, 1):
            console.print(f"  [{NordColors.FROST_3}]{i})[/] {label}")
        return self.source.ask(key, f"Enter selection [1-{len(labels)}]")

    def collect(self) -> ProvisioningRequest:
        domain = self._value("domain", "Enter your public domain (e.g., example.com)").lower()
        upstream = self._value(
            "upstream", "Enter your full service address (e.g., http://backend:3000)"
        )
        if not domain or not upstream:
            raise ValidationError("Domain and service address cannot be empty")
        if not HOSTNAME_RE.match(domain):
            raise ValidationError(f"'{domain}' is not a valid domain name")
        upstream = normalize_upstream(upstream)

        install_vpn = self._flag("install_vpn", "Would you like to install Tailscale?")

        profile = FirewallProfile.parse(
            self._menu(
                "firewall",
                "Choose a firewall rule to apply:",
                [p.label for p in FirewallProfile],
            )
        )
        strategy = CertificateStrategy.parse(
            self._menu(
                "cert_strategy",
                "Choose SSL certificate option:",
                [s.label for s in CertificateStrategy],
            )
        )

        cert_file = key_file = None
        if strategy is CertificateStrategy.EXISTING_FILES:
            cert_file = self._value("cert_file", "Enter path to SSL certificate file")
            key_file = self._value("key_file", "Enter path to SSL private key file")
            for path in (cert_file, key_file):
                if not path or not os.path.isfile(path):
                    raise ValidationError(f"Certificate file not found: {path or '(empty)'}")

        acme_email = self.preset.get("acme_email")
        request = ProvisioningRequest(
            domain=domain,
            upstream_address=upstream,
            install_vpn_agent=install_vpn,
            firewall_profile=profile,
            certificate_strategy=strategy,
            cert_file=cert_file,
            key_file=key_file,
            include_www=parse_bool(self.preset.get("include_www", False)),
            acme_email=str(acme_email) if acme_email else None,
        )
        logger.info(
            f"Request: domain={request.domain} upstream={request.upstream_address} "
            f"vpn={request.install_vpn_agent} firewall={profile.name} cert={strategy.name}"
        )
        return request
