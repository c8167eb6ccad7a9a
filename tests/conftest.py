"""
Shared test fixtures and configuration.

Every filesystem path a provisioning run touches is redirected under
``tmp_path``; external programs (apt, service, mysql, http, shell) are
replaced by MockAdapters registered under their real names.
"""

from pathlib import Path

import pytest
import yaml

from devbox.adapters.mock import MockAdapter
from devbox.adapters.registry import AdapterRegistry
from devbox.adapters.shell.filesystem import FilesystemAdapter
from devbox.core.engine.context import Connectivity, StepContext
from devbox.core.models.config import ProvisionConfig


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def machine(tmp_path: Path) -> dict[str, Path]:
    """A fake machine layout: projects root, config sources, live paths."""
    layout = {
        "www": tmp_path / "srv" / "www",
        "config_src": tmp_path / "srv" / "config",
        "database": tmp_path / "srv" / "database",
        "etc": tmp_path / "etc",
        "vhost_dir": tmp_path / "etc" / "nginx" / "custom-sites",
        "hosts_file": tmp_path / "etc" / "hosts",
    }
    layout["www"].mkdir(parents=True)
    layout["config_src"].mkdir(parents=True)
    layout["database"].mkdir(parents=True)
    layout["vhost_dir"].mkdir(parents=True)
    layout["hosts_file"].write_text("127.0.0.1 localhost\n::1 ip6-localhost\n")

    (layout["config_src"] / "nginx.conf").write_text("worker_processes 1;\n")
    sites_src = layout["config_src"] / "sites"
    sites_src.mkdir()
    (sites_src / "default.conf").write_text("server { listen 80; }\n")
    return layout


@pytest.fixture
def config_data(machine: dict[str, Path]) -> dict:
    """Raw provision.yml content pointing at the fake machine."""
    etc = machine["etc"]
    database = machine["database"]
    return {
        "name": "test-box",
        "run_as": None,
        "packages": {
            "desired": ["nginx", "mysql-server", "curl"],
            "preseed": ["postfix postfix/mailname string vvv"],
        },
        "tls": {
            "key": str(etc / "nginx" / "server.key"),
            "csr": str(etc / "nginx" / "server.csr"),
            "cert": str(etc / "nginx" / "server.crt"),
        },
        "config_groups": [
            {
                "name": "nginx",
                "service": "nginx",
                "templates": [
                    {
                        "source": str(machine["config_src"] / "nginx.conf"),
                        "destination": str(etc / "nginx" / "nginx.conf"),
                    },
                    {
                        "source": str(machine["config_src"] / "sites"),
                        "destination": str(machine["vhost_dir"]),
                        "mirror": True,
                    },
                ],
            },
        ],
        "database": {
            "init_script": str(database / "init.sql"),
            "custom_script": str(database / "init-custom.sql"),
            "import_command": str(database / "import-sql.sh"),
            "backups_dir": str(database / "backups"),
        },
        "sites": {
            "www_root": str(machine["www"]),
            "vhost_dir": str(machine["vhost_dir"]),
            "hosts_file": str(machine["hosts_file"]),
        },
        "links": {"Visit the dashboard": "http://vvv.dev"},
    }


@pytest.fixture
def config(config_data: dict) -> ProvisionConfig:
    return ProvisionConfig.model_validate(config_data)


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict) -> Path:
    """provision.yml written to disk."""
    path = tmp_path / "provision.yml"
    path.write_text(yaml.safe_dump(config_data, sort_keys=False))
    return path


@pytest.fixture
def mocks() -> dict[str, MockAdapter]:
    """Doubles for every adapter that talks to an external program."""
    return {name: MockAdapter(adapter_name=name) for name in ("apt", "service", "mysql", "http", "shell")}


@pytest.fixture
def registry(mocks: dict[str, MockAdapter]) -> AdapterRegistry:
    """Registry with mocked tools and the real filesystem adapter."""
    reg = AdapterRegistry()
    for mock in mocks.values():
        reg.register(mock)
    reg.register(FilesystemAdapter())
    return reg


@pytest.fixture
def step_context(config: ProvisionConfig, registry: AdapterRegistry) -> StepContext:
    """A context that already passed the connectivity probe."""
    return StepContext(
        config=config,
        registry=registry,
        connectivity=Connectivity(connected=True, checked=True),
    )


@pytest.fixture
def make_site(machine: dict[str, Path]):
    """Factory: create a project directory under the projects root with descriptors."""

    def _make(relative: str, *, vhost: str | None = None,
              hosts: str | None = None, init: str | None = None) -> Path:
        site = machine["www"] / relative
        site.mkdir(parents=True, exist_ok=True)
        if vhost is not None:
            (site / "vvv-nginx.conf").write_text(vhost)
        if hosts is not None:
            (site / "vvv-hosts").write_text(hosts)
        if init is not None:
            (site / "vvv-init.sh").write_text(init)
        return site

    return _make
