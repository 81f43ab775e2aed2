"""Tests for import path / version helpers and the confirm prompt."""

from __future__ import annotations

import io

import pytest

from beku.modules.common import (
    CommandError,
    PackageRequiredError,
    confirm,
    get_compare_url,
    has_import_prefix,
    import_prefixes,
    is_ignored_dir,
    is_remote_url,
    is_tag_version,
    parse_pkg_version,
    split_remote_url,
)


class TestIsIgnoredDir:
    @pytest.mark.parametrize("name", ["_x", ".git", "vendor", "testdata"])
    def test_ignored(self, name):
        assert is_ignored_dir(name)

    @pytest.mark.parametrize("name", ["normal", "", "vendors", "x_"])
    def test_not_ignored(self, name):
        assert not is_ignored_dir(name)


class TestIsTagVersion:
    @pytest.mark.parametrize("version,expected", [
        ("v1.0.0", True),
        ("1.0", True),
        ("abc1234", False),
        ("", False),
        (" v", False),
        (".1", False),
    ])
    def test_classification(self, version, expected):
        assert is_tag_version(version) is expected


class TestParsePkgVersion:
    def test_with_version(self):
        assert parse_pkg_version("pkg@v1.0.0") == ("pkg", "v1.0.0")

    def test_without_version(self):
        assert parse_pkg_version("pkg") == ("pkg", "")

    def test_empty(self):
        assert parse_pkg_version("") == ("", "")

    def test_trims_both_parts(self):
        assert parse_pkg_version(" pkg @ 123 ") == ("pkg", "123")

    def test_scp_url(self):
        assert parse_pkg_version("git@github.com:a/b.git") == ("git@github.com:a/b.git", "")
        assert parse_pkg_version("git@github.com:a/b.git@v1.2.0") == ("git@github.com:a/b.git", "v1.2.0")

    def test_only_version(self):
        name, version = parse_pkg_version("@v1")
        assert name == ""
        assert version == "v1"


class TestImportPrefix:
    def test_exact(self):
        assert has_import_prefix("github.com/a/b", "github.com/a/b")

    def test_sub_package(self):
        assert has_import_prefix("github.com/a/b/c", "github.com/a/b")

    def test_respects_segments(self):
        assert not has_import_prefix("github.com/a/bc", "github.com/a/b")

    def test_empty_prefix(self):
        assert not has_import_prefix("github.com/a/b", "")

    def test_prefixes_longest_first(self):
        assert list(import_prefixes("a/b/c")) == ["a/b/c", "a/b", "a"]


class TestRemoteURL:
    def test_is_remote_url(self):
        assert is_remote_url("https://github.com/a/b")
        assert is_remote_url("git@github.com:a/b.git")
        assert not is_remote_url("github.com/a/b")

    def test_split(self):
        assert split_remote_url("git@github.com:shuLhan/beku.git") == ("github.com", "shuLhan/beku")
        assert split_remote_url("https://GitHub.com/shuLhan/beku") == ("github.com", "shuLhan/beku")
        assert split_remote_url("https://github.com") is None
        assert split_remote_url("") is None


class TestGetCompareURL:
    def test_scp_github(self):
        url = get_compare_url("git@github.com:shuLhan/beku.git", "v0.1.0", "v0.2.0")
        assert url == "https://github.com/shuLhan/beku/compare/v0.1.0...v0.2.0"

    def test_https_github(self):
        url = get_compare_url("https://github.com/shuLhan/beku", "a", "b")
        assert url == "https://github.com/shuLhan/beku/compare/a...b"

    def test_golang_org(self):
        url = get_compare_url("https://golang.org/x/net", "a", "b")
        assert url == "https://github.com/golang/net/compare/a...b"

    def test_unsupported_host(self):
        assert get_compare_url("https://gitlab.com/a/b", "a", "b") == ""

    def test_empty(self):
        assert get_compare_url("", "a", "b") == ""


class TestConfirm:
    def _ask(self, answer, default):
        out = io.StringIO()
        result = confirm(io.StringIO(answer), out, "Continuar?", default)
        return result, out.getvalue()

    def test_blank_returns_default(self):
        assert self._ask("\n", True)[0] is True
        assert self._ask("\n", False)[0] is False

    def test_eof_returns_default(self):
        assert self._ask("", True)[0] is True

    def test_yes(self):
        assert self._ask("y\n", False)[0] is True
        assert self._ask("Yes\n", False)[0] is True

    def test_anything_else_is_no(self):
        assert self._ask("n\n", True)[0] is False
        assert self._ask("sim\n", True)[0] is False

    def test_hint(self):
        assert "[Y/n]" in self._ask("\n", True)[1]
        assert "[y/N]" in self._ask("\n", False)[1]


class TestErrors:
    def test_command_error_message(self):
        err = CommandError("gitFetch", 128, "", "fatal: no remote\n")
        assert str(err) == "gitFetch: exit 128: fatal: no remote"
        assert err.rc == 128

    def test_command_error_without_output(self):
        assert str(CommandError("GoInstall", 2)) == "GoInstall: exit 2"

    def test_package_required(self):
        err = PackageRequiredError("a/b", ["c/d", "e/f"])
        assert "c/d, e/f" in str(err)
        assert err.required_by == ["c/d", "e/f"]
