"""devbox — idempotent provisioning for a single development VM."""

__version__ = "0.1.0"
