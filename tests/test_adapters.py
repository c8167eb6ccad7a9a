"""
Tests for adapter protocol, registry, mock, shell, filesystem, system and network adapters.
"""

import io
import tarfile
import urllib.error
from pathlib import Path

import pytest

from devbox.adapters import default_registry
from devbox.adapters.base import ExecutionContext
from devbox.adapters.mock import MockAdapter
from devbox.adapters.network.http import HttpAdapter
from devbox.adapters.registry import AdapterRegistry
from devbox.adapters.shell.command import ShellCommandAdapter
from devbox.adapters.shell.filesystem import FilesystemAdapter, mirror_tree
from devbox.adapters.shell.runner import as_user
from devbox.adapters.system.apt import AptAdapter, parse_dpkg_version
from devbox.adapters.system.mysql import MySQLAdapter
from devbox.adapters.system.service import ServiceAdapter
from devbox.core.models.action import Action, Receipt


def _ctx(adapter: str, action_id: str = "test", **params) -> ExecutionContext:
    action = Action(id=action_id, adapter=adapter, params=params)
    return ExecutionContext(action=action, params=params)


def _completed(stdout: str = "", stderr: str = "", return_code: int = 0) -> dict:
    return {
        "ok": return_code == 0,
        "return_code": return_code,
        "stdout": stdout,
        "stderr": stderr,
        "elapsed_ms": 1,
    }


# ── Protocol Tests ───────────────────────────────────────────────────


class TestExecutionContext:
    def test_working_dir_from_params(self):
        assert _ctx("shell", cwd="/srv/www/site").working_dir == "/srv/www/site"

    def test_working_dir_absent(self):
        assert _ctx("shell").working_dir is None


# ── Mock Adapter Tests ───────────────────────────────────────────────


class TestMockAdapter:
    def test_default_success(self):
        mock = MockAdapter(adapter_name="test-mock")
        receipt = mock.execute(_ctx("test-mock", "op-1"))
        assert receipt.ok
        assert mock.call_count == 1

    def test_custom_response_is_copied(self):
        mock = MockAdapter()
        mock.set_response("op-1", Receipt.success(adapter="mock", action_id="op-1", output="custom"))
        first = mock.execute(_ctx("mock", "op-1"))
        first.output = "mutated"
        assert mock.execute(_ctx("mock", "op-1")).output == "custom"

    def test_set_failure(self):
        mock = MockAdapter()
        mock.set_failure("op-fail", error="Intentional failure")
        receipt = mock.execute(_ctx("mock", "op-fail"))
        assert receipt.failed
        assert "Intentional failure" in receipt.error

    def test_called_ids(self):
        mock = MockAdapter()
        for i in range(3):
            mock.execute(_ctx("mock", f"op-{i}"))
        assert mock.called_ids == ["op-0", "op-1", "op-2"]

    def test_reset(self):
        mock = MockAdapter()
        mock.set_failure("op-1")
        mock.execute(_ctx("mock", "op-1"))
        mock.reset()
        assert mock.call_count == 0
        assert mock.execute(_ctx("mock", "op-1")).ok


# ── Registry Tests ──────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_get(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="test")
        registry.register(mock)
        assert registry.get("test") is mock

    def test_register_replaces_same_name(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="apt"))
        replacement = MockAdapter(adapter_name="apt")
        registry.register(replacement)
        assert registry.get("apt") is replacement

    def test_missing_adapter_is_failed_receipt(self):
        receipt = AdapterRegistry().execute("nope", "x")
        assert receipt.failed
        assert "No adapter registered" in receipt.error

    def test_validation_failure(self):
        registry = AdapterRegistry()
        registry.register(FilesystemAdapter())
        receipt = registry.execute("filesystem", "fs:bad", operation="teleport", path="/x")
        assert receipt.failed
        assert receipt.error.startswith("Validation failed")

    def test_dry_run_skips_mutations(self, tmp_path: Path):
        registry = AdapterRegistry(dry_run=True)
        registry.register(FilesystemAdapter())
        target = tmp_path / "f.txt"

        receipt = registry.execute("filesystem", "fs:write", operation="write", path=str(target), content="x")
        assert receipt.skipped
        assert receipt.skip_reason == "dry_run"
        assert not target.exists()

    def test_dry_run_still_runs_read_only(self, tmp_path: Path):
        registry = AdapterRegistry(dry_run=True)
        mock = MockAdapter(adapter_name="apt")
        registry.register(mock)

        receipt = registry.execute("apt", "apt:query:nginx", read_only=True, operation="query", package="nginx")
        assert receipt.ok
        assert mock.called_ids == ["apt:query:nginx"]

    def test_mock_mode_without_adapter(self):
        registry = AdapterRegistry(mock_mode=True)
        receipt = registry.execute("apt", "apt:install", operation="install")
        assert receipt.ok
        assert receipt.metadata["mock"] is True

    def test_mock_mode_ignores_registered_adapters(self, tmp_path: Path):
        registry = AdapterRegistry(mock_mode=True)
        registry.register(FilesystemAdapter())
        target = tmp_path / "f.txt"

        receipt = registry.execute("filesystem", "fs:write", operation="write", path=str(target), content="x")
        assert receipt.ok
        assert not target.exists()

    def test_adapter_exception_becomes_receipt(self):
        class Exploding(MockAdapter):
            def execute(self, context):
                raise RuntimeError("kaboom")

        registry = AdapterRegistry()
        registry.register(Exploding(adapter_name="boom"))
        receipt = registry.execute("boom", "x")
        assert receipt.failed
        assert "kaboom" in receipt.error

    def test_default_registry(self):
        registry = default_registry()
        for name in ("shell", "filesystem", "apt", "service", "mysql", "http"):
            assert registry.get(name) is not None, name


# ── Shell Adapter Tests ─────────────────────────────────────────────


class TestShellCommandAdapter:
    def test_run_list_command(self):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command=["echo", "hello"]))
        assert receipt.ok
        assert receipt.output == "hello"

    def test_run_string_command(self):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command="echo a && echo b"))
        assert receipt.output == "a\nb"

    def test_cwd(self, tmp_path: Path):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command=["pwd"], cwd=str(tmp_path)))
        assert receipt.output == str(tmp_path.resolve())

    def test_non_zero_exit(self):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command="echo oops >&2; exit 3"))
        assert receipt.failed
        assert receipt.error == "oops"
        assert receipt.metadata["return_code"] == 3

    def test_command_not_found(self):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command=["definitely-not-a-command-xyz"]))
        assert receipt.failed
        assert "not found" in receipt.error

    def test_stdin(self):
        receipt = ShellCommandAdapter().execute(_ctx("shell", command=["cat"], input="piped"))
        assert receipt.output == "piped"

    def test_validate_missing_cwd(self, tmp_path: Path):
        valid, msg = ShellCommandAdapter().validate(_ctx("shell", command="true", cwd=str(tmp_path / "x")))
        assert not valid
        assert "does not exist" in msg

    def test_validate_missing_command(self):
        valid, _ = ShellCommandAdapter().validate(_ctx("shell"))
        assert not valid


class TestAsUser:
    def test_no_user(self):
        assert as_user(["npm", "i"], None) == ["npm", "i"]

    def test_root_user_unchanged(self):
        assert as_user(["npm", "i"], "root") == ["npm", "i"]

    def test_wraps_when_root(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("devbox.adapters.shell.runner.os.geteuid", lambda: 0)
        assert as_user(["npm", "i"], "vagrant") == ["sudo", "-EH", "-u", "vagrant", "--", "npm", "i"]

    def test_unprivileged_unchanged(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("devbox.adapters.shell.runner.os.geteuid", lambda: 1000)
        assert as_user(["npm", "i"], "vagrant") == ["npm", "i"]


# ── Filesystem Adapter Tests ────────────────────────────────────────


class TestFilesystemAdapter:
    def test_write_creates_parents(self, tmp_path: Path):
        fs = FilesystemAdapter()
        target = tmp_path / "sub" / "file.txt"
        assert fs.execute(_ctx("filesystem", operation="write", path=str(target), content="hi")).ok
        assert target.read_text() == "hi"

    def test_copy_overwrites(self, tmp_path: Path):
        src = tmp_path / "src.conf"
        src.write_text("new")
        dst = tmp_path / "live" / "dst.conf"
        dst.parent.mkdir()
        dst.write_text("old")

        receipt = FilesystemAdapter().execute(_ctx("filesystem", operation="copy", source=str(src), path=str(dst)))
        assert receipt.ok
        assert dst.read_text() == "new"

    def test_copy_validates_source(self, tmp_path: Path):
        valid, msg = FilesystemAdapter().validate(
            _ctx("filesystem", operation="copy", source=str(tmp_path / "none"), path=str(tmp_path / "d")),
        )
        assert not valid
        assert "not found" in msg

    def test_remove_missing_is_ok(self, tmp_path: Path):
        receipt = FilesystemAdapter().execute(_ctx("filesystem", operation="remove", path=str(tmp_path / "gone")))
        assert receipt.ok
        assert receipt.metadata["existed"] is False

    def test_symlink_replaces(self, tmp_path: Path):
        src = tmp_path / "a.list"
        src.write_text("deb x")
        link = tmp_path / "b.list"
        link.write_text("regular file")

        FilesystemAdapter().execute(_ctx("filesystem", operation="symlink", source=str(src), path=str(link)))
        assert link.is_symlink()
        assert link.read_text() == "deb x"

    def test_ensure_line(self, tmp_path: Path):
        fs = FilesystemAdapter()
        target = tmp_path / "main.cf"
        target.write_text("myhostname = vvv")

        first = fs.execute(_ctx("filesystem", operation="ensure_line", path=str(target), line="inet_protocols = ipv4"))
        second = fs.execute(_ctx("filesystem", operation="ensure_line", path=str(target), line="inet_protocols = ipv4"))
        assert first.metadata["added"] is True
        assert second.metadata["added"] is False
        assert target.read_text() == "myhostname = vvv\ninet_protocols = ipv4\n"

    def test_mirror(self, tmp_path: Path):
        src = tmp_path / "src"
        (src / "nested").mkdir(parents=True)
        (src / "a.conf").write_text("a")
        (src / "nested" / "b.conf").write_text("b")
        dst = tmp_path / "dst"
        (dst / "stale_dir").mkdir(parents=True)
        (dst / "stale.conf").write_text("x")

        receipt = FilesystemAdapter().execute(_ctx("filesystem", operation="mirror", source=str(src), path=str(dst)))
        assert receipt.ok
        assert sorted(p.relative_to(dst).as_posix() for p in dst.rglob("*")) == ["a.conf", "nested", "nested/b.conf"]

    def test_mirror_tree_counts(self, tmp_path: Path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "a").write_text("1")
        dst = tmp_path / "dst"
        dst.mkdir()
        (dst / "old").write_text("2")
        assert mirror_tree(src, dst) == (1, 1)

    def test_mirror_replaces_file_with_directory(self, tmp_path: Path):
        src = tmp_path / "src"
        (src / "conf.d").mkdir(parents=True)
        (src / "conf.d" / "x").write_text("x")
        dst = tmp_path / "dst"
        dst.mkdir()
        (dst / "conf.d").write_text("was a file")

        mirror_tree(src, dst)
        assert (dst / "conf.d" / "x").read_text() == "x"


# ── System Adapter Tests ────────────────────────────────────────────


class TestParseDpkgVersion:
    def test_installed(self):
        output = "Package: nginx\nStatus: install ok installed\nVersion: 1.6.2-1~trusty\n"
        assert parse_dpkg_version(output) == "1.6.2-1~trusty"

    def test_config_files_only(self):
        output = "Package: nginx\nStatus: deinstall ok config-files\nVersion: 1.6.2\n"
        assert parse_dpkg_version(output) is None

    def test_unknown(self):
        assert parse_dpkg_version("dpkg-query: package 'x' is not installed") is None


class TestAptAdapter:
    def test_query_installed(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "devbox.adapters.system.apt.run_subprocess",
            lambda cmd, **kw: _completed("Status: install ok installed\nVersion: 2.0\n"),
        )
        receipt = AptAdapter().execute(_ctx("apt", operation="query", package="curl"))
        assert receipt.ok
        assert receipt.metadata["installed"] is True
        assert receipt.metadata["version"] == "2.0"

    def test_query_missing_is_not_an_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "devbox.adapters.system.apt.run_subprocess",
            lambda cmd, **kw: _completed(stderr="not installed", return_code=1),
        )
        receipt = AptAdapter().execute(_ctx("apt", operation="query", package="curl"))
        assert receipt.ok
        assert receipt.metadata["installed"] is False

    def test_install_single_batch(self, monkeypatch: pytest.MonkeyPatch):
        calls = []

        def fake(cmd, **kw):
            calls.append((cmd, kw))
            return _completed()

        monkeypatch.setattr("devbox.adapters.system.apt.run_subprocess", fake)
        AptAdapter().execute(_ctx("apt", operation="install", packages=["nginx", "curl"]))
        assert calls[0][0] == ["apt-get", "install", "--assume-yes", "nginx", "curl"]
        assert calls[0][1]["env_overrides"]["DEBIAN_FRONTEND"] == "noninteractive"

    def test_preseed_feeds_stdin(self, monkeypatch: pytest.MonkeyPatch):
        calls = []
        monkeypatch.setattr(
            "devbox.adapters.system.apt.run_subprocess",
            lambda cmd, **kw: calls.append(kw) or _completed(),
        )
        AptAdapter().execute(_ctx("apt", operation="preseed", selections=["a b c", "d e f"]))
        assert calls[0]["input_text"] == "a b c\nd e f\n"

    def test_keyserver_key(self, monkeypatch: pytest.MonkeyPatch):
        calls = []
        monkeypatch.setattr(
            "devbox.adapters.system.apt.run_subprocess",
            lambda cmd, **kw: calls.append(cmd) or _completed(),
        )
        AptAdapter().execute(_ctx("apt", operation="add_key", keyserver="hkp://k:80", key_id="C7917B12"))
        assert calls[0][-2:] == ["--recv-key", "C7917B12"]

    def test_validate(self):
        apt = AptAdapter()
        assert not apt.validate(_ctx("apt", operation="install"))[0]
        assert not apt.validate(_ctx("apt", operation="add_key"))[0]
        assert not apt.validate(_ctx("apt", operation="upgrade-everything"))[0]
        assert apt.validate(_ctx("apt", operation="clean"))[0]


class TestServiceAdapter:
    def test_status_non_zero_is_still_ok(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "devbox.adapters.system.service.run_subprocess",
            lambda cmd, **kw: _completed(stdout="mysql stop/waiting", return_code=3),
        )
        receipt = ServiceAdapter().execute(_ctx("service", service="mysql", operation="status"))
        assert receipt.ok
        assert receipt.output == "mysql stop/waiting"

    def test_status_includes_stderr(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "devbox.adapters.system.service.run_subprocess",
            lambda cmd, **kw: _completed(stderr="mysql: unrecognized service", return_code=1),
        )
        receipt = ServiceAdapter().execute(_ctx("service", service="mysql", operation="status"))
        assert "unrecognized service" in receipt.output

    def test_restart_failure(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "devbox.adapters.system.service.run_subprocess",
            lambda cmd, **kw: _completed(stderr="stop: Unknown instance", return_code=1),
        )
        receipt = ServiceAdapter().execute(_ctx("service", service="mysql", operation="restart"))
        assert receipt.failed

    def test_validate(self):
        svc = ServiceAdapter()
        assert not svc.validate(_ctx("service", operation="status"))[0]
        assert not svc.validate(_ctx("service", service="nginx", operation="explode"))[0]


class TestMySQLAdapter:
    def test_script_fed_on_stdin(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        script = tmp_path / "init.sql"
        script.write_text("CREATE DATABASE wp;")
        calls = []
        monkeypatch.setattr(
            "devbox.adapters.system.mysql.run_subprocess",
            lambda cmd, **kw: calls.append((cmd, kw)) or _completed(),
        )

        receipt = MySQLAdapter().execute(_ctx("mysql", script=str(script), user="root", password="root"))
        assert receipt.ok
        assert calls[0][0] == ["mysql", "-u", "root", "-proot"]
        assert calls[0][1]["input_text"] == "CREATE DATABASE wp;"

    def test_validate_missing_script(self, tmp_path: Path):
        valid, msg = MySQLAdapter().validate(_ctx("mysql", script=str(tmp_path / "none.sql")))
        assert not valid
        assert "not found" in msg


# ── HTTP Adapter Tests ──────────────────────────────────────────────


class _FakeResponse(io.BytesIO):
    def __init__(self, data: bytes = b"", status: int = 200):
        super().__init__(data)
        self.status = status

    def getcode(self):
        return self.status


class TestHttpAdapter:
    def test_probe_reachable(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: _FakeResponse(status=200))
        receipt = HttpAdapter().execute(_ctx("http", operation="probe", url="http://google.com", tries=3, timeout=5))
        assert receipt.ok
        assert receipt.metadata["reachable"] is True
        assert receipt.metadata["attempts"] == 1

    def test_probe_http_error_counts_as_reachable(self, monkeypatch: pytest.MonkeyPatch):
        def raise_http_error(req, timeout=None):
            raise urllib.error.HTTPError(req.full_url, 405, "Method Not Allowed", {}, None)

        monkeypatch.setattr("urllib.request.urlopen", raise_http_error)
        receipt = HttpAdapter().execute(_ctx("http", operation="probe", url="http://google.com"))
        assert receipt.metadata["reachable"] is True
        assert receipt.metadata["status"] == 405

    def test_probe_unreachable_after_retries(self, monkeypatch: pytest.MonkeyPatch):
        attempts = []

        def fail(req, timeout=None):
            attempts.append(timeout)
            raise urllib.error.URLError("no route to host")

        monkeypatch.setattr("urllib.request.urlopen", fail)
        receipt = HttpAdapter().execute(_ctx("http", operation="probe", url="http://google.com", tries=3, timeout=5))
        assert receipt.ok
        assert receipt.metadata["reachable"] is False
        assert attempts == [5, 5, 5]

    def test_download(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: _FakeResponse(b"#!/bin/sh\n"))
        dest = tmp_path / "bin" / "ack"

        receipt = HttpAdapter().execute(_ctx("http", operation="download", url="http://x/ack", destination=str(dest)))
        assert receipt.ok
        assert dest.read_bytes() == b"#!/bin/sh\n"
        assert dest.stat().st_mode & 0o111

    def test_download_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        def fail(req, timeout=None):
            raise urllib.error.URLError("offline")

        monkeypatch.setattr("urllib.request.urlopen", fail)
        dest = tmp_path / "ack"
        receipt = HttpAdapter().execute(_ctx("http", operation="download", url="http://x/ack", destination=str(dest)))
        assert receipt.failed
        assert not dest.exists()
        assert list(tmp_path.iterdir()) == []

    def test_unpack_single_root(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tf:
            data = b"<?php\n"
            info = tarfile.TarInfo("phpMyAdmin-4.2.13.1-all-languages/index.php")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
        archive = buf.getvalue()
        monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: _FakeResponse(archive))

        target = tmp_path / "default" / "database-admin"
        receipt = HttpAdapter().execute(_ctx("http", operation="unpack", url="http://x/pma.tgz", target=str(target)))
        assert receipt.ok
        assert (target / "index.php").read_text() == "<?php\n"
