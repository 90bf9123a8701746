import datetime
import logging
import os
import re
import shutil
from typing import Optional

from proxy_setup.config import AppConfig
from proxy_setup.errors import ConfigInvalidError, StepError
from proxy_setup.models import CertificateMaterial, ProvisioningRequest
from proxy_setup.runner import CommandRunner

logger = logging.getLogger(__name__)

HASH_BUCKET_RE = re.compile(r"^(\s*)#\s*(server_names_hash_bucket_size\s+\d+\s*;.*)$", re.MULTILINE)


def render(request: ProvisioningRequest, material: CertificateMaterial) -> str:
    """
    Render the virtual host for ``request``.

    Two server blocks: port 80 redirects everything to HTTPS keeping host and
    path, port 443 terminates TLS and proxies to the upstream with the
    upgrade headers needed for websockets.
    """
    names = request.server_names
    return f"""server {{
    listen 80;
    listen [::]:80;
    server_name {names};
    return 301 https://$host$request_uri;
}}

server {{
    listen 443 ssl;
    listen [::]:443 ssl;
    server_name {names};

    ssl_certificate {material.cert_path};
    ssl_certificate_key {material.key_path};

    location / {{
        proxy_pass {request.upstream_address};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection 'upgrade';
        proxy_set_header Host $host;
        proxy_set_header X-Forwarded-Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_cache_bypass $http_upgrade;
    }}
}}
"""


def backup_file(fp: str) -> Optional[str]:
    if not os.path.isfile(fp):
        return None
    ts = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
    backup = f"{fp}.bak.{ts}"
    shutil.copy2(fp, backup)
    logger.info(f"Backed up {fp} to {backup}")
    return backup


class NginxSite:
    """The per-domain site file, its activation link and the server checks."""

    def __init__(self, config: AppConfig, runner: CommandRunner, domain: str):
        self.config = config
        self.runner = runner
        self.domain = domain
        self.available = config.site_path(domain)
        self.enabled = config.enabled_path(domain)

    def write(self, text: str) -> str:
        if os.path.isfile(self.available):
            with open(self.available) as f:
                if f.read() == text:
                    logger.info(f"{self.available} already up to date")
                    return self.available
            backup_file(self.available)
        os.makedirs(self.config.sites_available, exist_ok=True)
        with open(self.available, "w") as f:
            f.write(text)
        os.chmod(self.available, 0o644)
        logger.info(f"Wrote {self.available}")
        return self.available

    def activate(self) -> str:
        os.makedirs(self.config.sites_enabled, exist_ok=True)
        if os.path.islink(self.enabled):
            if os.path.realpath(self.enabled) == os.path.realpath(self.available):
                logger.info(f"{self.enabled} already enabled")
                return self.enabled
            logger.warning(f"Replacing stale link {self.enabled}")
            os.remove(self.enabled)
        elif os.path.exists(self.enabled):
            raise StepError(
                "Enabling Nginx site configuration",
                detail=f"{self.enabled} exists and is not a symlink",
            )
        os.symlink(self.available, self.enabled)
        logger.info(f"Linked {self.enabled} -> {self.available}")
        return self.enabled

    def tune_hash_bucket_size(self) -> bool:
        """Uncomment ``server_names_hash_bucket_size`` in nginx.conf for long names."""
        conf = self.config.nginx_conf
        if not os.path.isfile(conf):
            logger.warning(f"{conf} not found; skipping hash bucket tuning")
            return False
        with open(conf) as f:
            content = f.read()
        updated, count = HASH_BUCKET_RE.subn(r"\1\2", content)
        if not count:
            logger.debug("server_names_hash_bucket_size already active or absent")
            return False
        backup_file(conf)
        with open(conf, "w") as f:
            f.write(updated)
        logger.info(f"Enabled server_names_hash_bucket_size in {conf}")
        return True

    def check(self) -> None:
        result = self.runner.run(["nginx", "-t"])
        if not result.ok:
            output = (result.stderr or result.stdout).strip()
            logger.error(f"nginx -t failed:\n{output}")
            raise ConfigInvalidError(
                f"Nginx configuration test failed; {self.available} left in place for inspection"
            )
        logger.info("Nginx configuration syntax is OK")
