import logging
import os
import shutil
import tempfile
from typing import List

from proxy_setup.config import TEMP_PREFIX, AppConfig
from proxy_setup.errors import CertInvalidError, CertNotFoundError, InvalidSelectionError
from proxy_setup.inputs import PASTED_CERT, PASTED_KEY, InputSource
from proxy_setup.models import CertificateMaterial, CertificateStrategy, ProvisioningRequest
from proxy_setup.runner import CommandRunner, run_checked

logger = logging.getLogger(__name__)

CERTBOT_PACKAGES = ["certbot", "python3-certbot-nginx"]


class CertificateResolver:
    """
    Produces the certificate and key files the rendered site refers to.

    Exactly one strategy runs per request; there is no fallback between them.
    """

    def __init__(self, config: AppConfig, runner: CommandRunner, source: InputSource):
        self.config = config
        self.runner = runner
        self.source = source

    def material_for(self, strategy: CertificateStrategy, domain: str) -> CertificateMaterial:
        strategy = CertificateStrategy.parse(strategy)
        if strategy is CertificateStrategy.ACME:
            live = os.path.join(self.config.letsencrypt_live, domain)
            return CertificateMaterial(
                cert_path=os.path.join(live, "fullchain.pem"),
                key_path=os.path.join(live, "privkey.pem"),
            )
        return CertificateMaterial(
            cert_path=os.path.join(self.config.ssl_cert_dir, f"{domain}.crt"),
            key_path=os.path.join(self.config.ssl_key_dir, f"{domain}.key"),
        )

    def resolve(self, strategy: CertificateStrategy, request: ProvisioningRequest) -> CertificateMaterial:
        if strategy is CertificateStrategy.EXISTING_FILES:
            return self._from_existing(request)
        if strategy is CertificateStrategy.PASTED_DATA:
            return self._from_pasted(request)
        if strategy is CertificateStrategy.ACME:
            return self._from_acme(request)
        raise InvalidSelectionError(f"Invalid certificate selection: {strategy!r}")

    # ----------------------------------------------------------------
    # Validation
    # ----------------------------------------------------------------
    def is_valid_certificate(self, path: str) -> bool:
        return self.runner.run(["openssl", "x509", "-noout", "-in", path]).ok

    def is_valid_key(self, path: str) -> bool:
        # pkey accepts RSA, EC and Ed25519 keys alike
        return self.runner.run(["openssl", "pkey", "-noout", "-in", path]).ok

    def _validate(self, cert_path: str, key_path: str) -> None:
        if not self.is_valid_certificate(cert_path):
            raise CertInvalidError("Invalid certificate data")
        if not self.is_valid_key(key_path):
            raise CertInvalidError("Invalid private key data")

    def _install(self, cert_src: str, key_src: str, material: CertificateMaterial, move: bool) -> None:
        transfer = shutil.move if move else shutil.copyfile
        for src, dest, mode in (
            (cert_src, material.cert_path, 0o644),
            (key_src, material.key_path, 0o600),
        ):
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            transfer(src, dest)
            os.chmod(dest, mode)
            logger.info(f"Installed {dest} (mode {oct(mode)})")

    # ----------------------------------------------------------------
    # Strategies
    # ----------------------------------------------------------------
    def _from_existing(self, request: ProvisioningRequest) -> CertificateMaterial:
        for path in (request.cert_file, request.key_file):
            if not path or not os.path.isfile(path):
                raise CertNotFoundError(f"Certificate files not found: {path or '(not given)'}")
        self._validate(request.cert_file, request.key_file)
        material = self.material_for(CertificateStrategy.EXISTING_FILES, request.domain)
        self._install(request.cert_file, request.key_file, material, move=False)
        return material

    def _write_temp(self, text: str) -> str:
        fd, path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.config.temp_dir)
        os.chmod(path, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(text)
        return path

    def _from_pasted(self, request: ProvisioningRequest) -> CertificateMaterial:
        cert_text = self.source.read_block(PASTED_CERT, "Paste your certificate (followed by any intermediate certificates):")
        key_text = self.source.read_block(PASTED_KEY, "Paste your private key data:")
        if not cert_text.strip():
            raise CertInvalidError("Invalid certificate data: nothing was pasted")
        if not key_text.strip():
            raise CertInvalidError("Invalid private key data: nothing was pasted")

        temp_files: List[str] = []
        try:
            temp_files.append(self._write_temp(cert_text))
            temp_files.append(self._write_temp(key_text))
            self._validate(*temp_files)
            material = self.material_for(CertificateStrategy.PASTED_DATA, request.domain)
            self._install(temp_files[0], temp_files[1], material, move=True)
            temp_files = []
            return material
        finally:
            for path in temp_files:
                if os.path.exists(path):
                    os.remove(path)

    def _from_acme(self, request: ProvisioningRequest) -> CertificateMaterial:
        run_checked(
            self.runner,
            ["apt", "install", "-y"] + CERTBOT_PACKAGES,
            "Installing Certbot",
        )
        # certonly: the rendered site references the live/ files itself
        cmd = ["certbot", "certonly", "--nginx", "-d", request.domain]
        if request.include_www:
            cmd += ["-d", f"www.{request.domain}"]
        if request.acme_email:
            cmd += ["--non-interactive", "--agree-tos", "-m", request.acme_email]
        logger.info(f"Requesting certificate for {request.domain} with Certbot")
        run_checked(
            self.runner,
            cmd,
            "Generating SSL certificate with Certbot",
            interactive=not request.acme_email,
        )
        return self.material_for(CertificateStrategy.ACME, request.domain)
