import json
import os
import tempfile
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from proxy_setup.errors import ValidationError

# ----------------------------------------------------------------
# Application Constants
# ----------------------------------------------------------------
APP_NAME: str = "Proxy Setup"
APP_SUBTITLE: str = "Nginx Reverse Proxy Bootstrap"
VERSION: str = "1.0.0"

TEMP_PREFIX: str = "proxy_setup_"
MAX_LOG_SIZE: int = 10 * 1024 * 1024  # 10MB


@dataclass
class AppConfig:
    """Host paths and endpoints used by a provisioning run."""

    # Nginx layout
    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    nginx_conf: str = "/etc/nginx/nginx.conf"

    # Certificate storage
    ssl_cert_dir: str = "/etc/ssl/certs"
    ssl_key_dir: str = "/etc/ssl/private"
    letsencrypt_live: str = "/etc/letsencrypt/live"

    # Web root parent; each domain gets <www_root>/<domain>/html
    www_root: str = "/var/www"
    temp_dir: str = field(default_factory=tempfile.gettempdir)

    # Logging
    log_file: str = "/var/log/proxy_setup.log"
    max_log_size: int = MAX_LOG_SIZE

    # Remote endpoints
    ip_echo_url: str = "https://ipv4.icanhazip.com"
    ip_lookup_timeout: int = 10
    tailscale_install_url: str = "https://tailscale.com/install.sh"

    def site_path(self, domain: str) -> str:
        return os.path.join(self.sites_available, domain)

    def enabled_path(self, domain: str) -> str:
        return os.path.join(self.sites_enabled, domain)

    def webroot(self, domain: str) -> str:
        return os.path.join(self.www_root, domain, "html")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_file(cls, path: str) -> Tuple["AppConfig", Dict[str, Any]]:
        """
        Load configuration from a JSON file.

        The file holds an object with an optional ``paths`` section overriding
        AppConfig fields and an optional ``request`` section of preset request
        values.

        Returns:
            The AppConfig and the preset request values.

        Raises:
            ValidationError: If the file is unreadable or has unknown keys.
        """
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Cannot read config file {path}: {e}")
        if not isinstance(data, dict):
            raise ValidationError(f"Config file {path} must contain a JSON object")

        known = {f.name for f in fields(cls)}
        paths = data.get("paths", {}) or {}
        unknown = set(paths) - known
        if unknown:
            raise ValidationError(
                f"Unknown keys in 'paths' section of {path}: {', '.join(sorted(unknown))}"
            )
        request = data.get("request", {}) or {}
        if not isinstance(request, dict):
            raise ValidationError(f"'request' section of {path} must be an object")
        return cls(**paths), request

    @classmethod
    def load(cls, path: Optional[str] = None) -> Tuple["AppConfig", Dict[str, Any]]:
        if path is None:
            return cls(), {}
        return cls.from_file(path)
