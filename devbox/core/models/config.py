"""
Provision config model — the declared shape of the virtual machine.

Loaded from provision.yml, this is the canonical truth about which
packages should exist, which config files belong where, and where the
projects live. Defaults describe the stock VM layout; a config file only
needs to override what differs.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ConfigTemplate(BaseModel):
    """A source-of-truth config file (or directory) and its live location.

    Directory templates with ``mirror`` set are synced exactly: entries
    in the destination that are absent from the source are deleted.
    """

    source: str
    destination: str
    mirror: bool = False


class NetworkConfig(BaseModel):
    """Connectivity probe settings."""

    probe_url: str = "http://google.com"
    tries: int = Field(default=3, ge=1)
    timeout: int = Field(default=5, ge=1)


class SigningKey(BaseModel):
    """An apt signing key, fetched from a URL or a keyserver."""

    name: str
    url: str | None = None
    keyserver: str | None = None
    key_id: str | None = None


class LineInFile(BaseModel):
    """A line that must be present (exactly once) in a text file."""

    path: str
    line: str


class ToolDownload(BaseModel):
    """A single-file CLI tool fetched over HTTP."""

    name: str
    url: str
    destination: str
    mode: int = 0o755
    skip_if_exists: bool = True


class ArchiveDownload(BaseModel):
    """A tarball unpacked into a target directory (e.g. the admin panel).

    The archive's single top-level directory becomes ``target``.
    ``config`` is copied into place on every online run.
    """

    name: str
    url: str
    target: str
    config: ConfigTemplate | None = None


class PackagesConfig(BaseModel):
    """Package reconciliation and network extras."""

    desired: list[str] = Field(default_factory=list)
    preseed: list[str] = Field(default_factory=list)
    apt_sources: ConfigTemplate | None = None
    ensure_lines: list[LineInFile] = Field(default_factory=list)
    signing_keys: list[SigningKey] = Field(default_factory=list)
    npm_globals: list[str] = Field(default_factory=list)
    tools: list[ToolDownload] = Field(default_factory=list)
    archives: list[ArchiveDownload] = Field(default_factory=list)


class TlsConfig(BaseModel):
    """Self-signed TLS material for the web server."""

    enabled: bool = True
    key: str = "/etc/nginx/server.key"
    csr: str = "/etc/nginx/server.csr"
    cert: str = "/etc/nginx/server.crt"
    bits: int = 2048
    days: int = 365


class ConfigGroup(BaseModel):
    """Config templates owned by one service.

    Templates are copied, ``commands`` run, then the service is
    restarted or reloaded. A group without a service (dotfiles) only
    copies.
    """

    name: str
    service: str | None = None
    action: Literal["restart", "reload", "none"] = "restart"
    templates: list[ConfigTemplate] = Field(default_factory=list)
    commands: list[str] = Field(default_factory=list)


class DatabaseConfig(BaseModel):
    """Database bootstrap settings."""

    service: str = "mysql"
    user: str = "root"
    password: str = "root"
    templates: list[ConfigTemplate] = Field(default_factory=list)
    init_script: str = "/srv/database/init.sql"
    custom_script: str = "/srv/database/init-custom.sql"
    import_command: str = "/srv/database/import-sql.sh"
    backups_dir: str = "/srv/database/backups"


class SitesConfig(BaseModel):
    """Where projects live and how their descriptors are materialized."""

    www_root: str = "/srv/www"
    max_depth: int = Field(default=5, ge=1)

    init_hook: str = "vvv-init.sh"
    vhost_template: str = "vvv-nginx.conf"
    hosts_list: str = "vvv-hosts"

    vhost_dir: str = "/etc/nginx/custom-sites"
    vhost_prefix: str = "vvv-auto-"
    path_token: str = "{vvv_path_to_folder}"
    fingerprint_length: int = Field(default=8, ge=4, le=32)
    reload_service: str | None = "nginx"

    hosts_file: str = "/etc/hosts"
    hosts_address: str = "127.0.0.1"
    hosts_marker: str = "# vvv-auto"


class ProvisionConfig(BaseModel):
    """Root provisioning config — loaded from provision.yml."""

    version: int = 1
    name: str = "devbox"
    run_as: str | None = "vagrant"

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    packages: PackagesConfig = Field(default_factory=PackagesConfig)
    tls: TlsConfig = Field(default_factory=TlsConfig)
    config_groups: list[ConfigGroup] = Field(default_factory=list)
    database: DatabaseConfig | None = Field(default_factory=DatabaseConfig)
    sites: SitesConfig = Field(default_factory=SitesConfig)

    links: dict[str, str] = Field(default_factory=dict)

    def all_templates(self) -> list[ConfigTemplate]:
        """Every config template declared anywhere in the config."""
        templates: list[ConfigTemplate] = []
        for group in self.config_groups:
            templates.extend(group.templates)
        if self.database:
            templates.extend(self.database.templates)
        if self.packages.apt_sources:
            templates.append(self.packages.apt_sources)
        return templates
