import enum
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from proxy_setup.errors import InvalidProfileError, InvalidSelectionError

HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))*$"
)


class FirewallProfile(enum.Enum):
    """ufw application profiles shipped with the nginx package."""

    FULL = "Nginx Full"
    HTTP_ONLY = "Nginx HTTP"
    HTTPS_ONLY = "Nginx HTTPS"
    NONE = None

    @property
    def rule(self) -> Optional[str]:
        return self.value

    @property
    def label(self) -> str:
        return {
            FirewallProfile.FULL: "Nginx Full (Allows both HTTP & HTTPS)",
            FirewallProfile.HTTP_ONLY: "Nginx HTTP (Allows only HTTP)",
            FirewallProfile.HTTPS_ONLY: "Nginx HTTPS (Allows only HTTPS)",
            FirewallProfile.NONE: "Skip firewall setup",
        }[self]

    @classmethod
    def parse(cls, value: Any) -> "FirewallProfile":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower() if value is not None else ""
        if key in _FIREWALL_CHOICES:
            return _FIREWALL_CHOICES[key]
        raise InvalidProfileError(f"Invalid firewall selection: {value!r}")


_FIREWALL_CHOICES = {
    "1": FirewallProfile.FULL,
    "full": FirewallProfile.FULL,
    "nginx full": FirewallProfile.FULL,
    "2": FirewallProfile.HTTP_ONLY,
    "http": FirewallProfile.HTTP_ONLY,
    "nginx http": FirewallProfile.HTTP_ONLY,
    "3": FirewallProfile.HTTPS_ONLY,
    "https": FirewallProfile.HTTPS_ONLY,
    "nginx https": FirewallProfile.HTTPS_ONLY,
    "4": FirewallProfile.NONE,
    "none": FirewallProfile.NONE,
    "skip": FirewallProfile.NONE,
}


class CertificateStrategy(enum.Enum):
    EXISTING_FILES = "existing"
    PASTED_DATA = "paste"
    ACME = "acme"

    @property
    def label(self) -> str:
        return {
            CertificateStrategy.EXISTING_FILES: "Use existing certificate files",
            CertificateStrategy.PASTED_DATA: "Paste certificate data",
            CertificateStrategy.ACME: "Generate new certificate with Certbot",
        }[self]

    @classmethod
    def parse(cls, value: Any) -> "CertificateStrategy":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower() if value is not None else ""
        if key in _STRATEGY_CHOICES:
            return _STRATEGY_CHOICES[key]
        raise InvalidSelectionError(f"Invalid certificate selection: {value!r}")


_STRATEGY_CHOICES = {
    "1": CertificateStrategy.EXISTING_FILES,
    "existing": CertificateStrategy.EXISTING_FILES,
    "2": CertificateStrategy.PASTED_DATA,
    "paste": CertificateStrategy.PASTED_DATA,
    "pasted": CertificateStrategy.PASTED_DATA,
    "3": CertificateStrategy.ACME,
    "acme": CertificateStrategy.ACME,
    "certbot": CertificateStrategy.ACME,
}


@dataclass(frozen=True)
class ProvisioningRequest:
    domain: str
    upstream_address: str
    install_vpn_agent: bool
    firewall_profile: FirewallProfile
    certificate_strategy: CertificateStrategy
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    include_www: bool = False
    acme_email: Optional[str] = None

    @property
    def server_names(self) -> str:
        if self.include_www:
            return f"{self.domain} www.{self.domain}"
        return self.domain


@dataclass(frozen=True)
class CertificateMaterial:
    cert_path: str
    key_path: str


@dataclass
class ProvisioningStep:
    """A single ordered unit of work wrapping one external action."""

    description: str
    action: Callable[[], Any]
    idempotent: bool = True
    # Steps that read from the operator run without the progress spinner.
    interactive: bool = False
