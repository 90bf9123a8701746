"""Bootstrap a host as a TLS-terminating nginx reverse proxy."""

from proxy_setup.config import VERSION as __version__
