"""Tests for filesystem helpers and the command runner."""

from __future__ import annotations

import inspect
import subprocess

import pytest

from beku.modules import log, utils
from beku.modules.common import CommandError


class TestIsDirEmpty:
    def test_missing_dir_is_empty(self, tmp_path):
        assert utils.is_dir_empty(str(tmp_path / "nope"))

    def test_empty_dir(self, tmp_path):
        assert utils.is_dir_empty(str(tmp_path))

    def test_with_file(self, tmp_path):
        (tmp_path / "f").write_text("x")
        assert not utils.is_dir_empty(str(tmp_path))


class TestRmdirEmptyAll:
    def test_removes_empty_chain(self, tmp_path):
        leaf = tmp_path / "a" / "b" / "c"
        leaf.mkdir(parents=True)
        utils.rmdir_empty_all(str(leaf), stop=str(tmp_path))
        assert not (tmp_path / "a").exists()
        assert tmp_path.exists()

    def test_stops_at_non_empty_parent(self, tmp_path):
        leaf = tmp_path / "a" / "b" / "c"
        leaf.mkdir(parents=True)
        (tmp_path / "a" / "keep").write_text("x")
        utils.rmdir_empty_all(str(leaf), stop=str(tmp_path))
        assert not (tmp_path / "a" / "b").exists()
        assert (tmp_path / "a").is_dir()

    def test_stops_at_file(self, tmp_path):
        f = tmp_path / "a" / "file"
        f.parent.mkdir()
        f.write_text("x")
        utils.rmdir_empty_all(str(f), stop=str(tmp_path))
        assert f.exists()

    def test_missing_start_is_skipped(self, tmp_path):
        parent = tmp_path / "a"
        parent.mkdir()
        utils.rmdir_empty_all(str(parent / "gone"), stop=str(tmp_path))
        assert not parent.exists()

    def test_never_removes_stop(self, tmp_path):
        root = tmp_path / "src"
        root.mkdir()
        utils.rmdir_empty_all(str(root), stop=str(root))
        assert root.is_dir()


class TestRun:
    def test_success(self, monkeypatch):
        monkeypatch.setattr(log, "run_cmd", lambda cmd, cwd=None, env=None: (0, "out", ""))
        assert utils.run("op", ["true"]) == (0, "out", "")

    def test_failure_raises_with_op(self, monkeypatch):
        monkeypatch.setattr(log, "run_cmd", lambda cmd, cwd=None, env=None: (1, "", "boom"))
        with pytest.raises(CommandError, match="^gitFetch: exit 1: boom"):
            utils.run("gitFetch", ["git", "fetch"])

    def test_failure_without_check(self, monkeypatch):
        monkeypatch.setattr(log, "run_cmd", lambda cmd, cwd=None, env=None: (1, "", "boom"))
        assert utils.run("op", ["false"], check=False)[0] == 1


class TestRunCmd:
    def test_missing_binary(self):
        rc, out, err = log.run_cmd(["beku-binario-que-nao-existe"])
        assert rc == 127
        assert out == ""

    def test_no_timeout_is_enforced(self, monkeypatch):
        # um fetch travado bloqueia o processo inteiro: nenhum timeout é passado
        seen = {}

        def fake_run(cmd, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(cmd, 0, "", "")

        monkeypatch.setattr(subprocess, "run", fake_run)
        log.run_cmd(["git", "fetch"])
        assert "timeout" not in seen
        assert "timeout" not in inspect.signature(log.run_cmd).parameters
