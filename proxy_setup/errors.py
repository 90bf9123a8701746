"""Exception hierarchy for proxy-setup.

Every error is fatal to a run. The CLI catches ``SetupError``, reports the
message and exits with ``exit_code``.
"""

from typing import Optional


class SetupError(Exception):
    """Base exception for setup errors."""

    exit_code: int = 1


class ValidationError(SetupError):
    """Raised when operator input is missing or malformed."""

    pass


class StepError(SetupError):
    """Raised when a provisioning step reports failure."""

    def __init__(self, description: str, exit_status: Optional[int] = None, detail: str = ""):
        self.description = description
        self.exit_status = exit_status
        self.detail = detail
        msg = f"Step failed: {description}"
        if exit_status is not None:
            msg += f" (exit status {exit_status})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class CertError(SetupError):
    """Raised when certificate material cannot be produced."""

    pass


class CertNotFoundError(CertError):
    """Raised when a certificate or key source file does not exist."""

    pass


class CertInvalidError(CertError):
    """Raised when certificate or key data fails validation."""

    pass


class ConfigInvalidError(CertError):
    """Raised when the web server rejects the rendered configuration."""

    pass


class InvalidSelectionError(CertError):
    """Raised for an unknown certificate strategy selection."""

    pass


class FirewallError(SetupError):
    """Raised when firewall configuration cannot proceed."""

    pass


class InvalidProfileError(FirewallError):
    """Raised for a firewall profile outside the known set."""

    pass
