"""Tests for archive URL and destination name resolution."""

import pytest

from strand.core.resolver import resolve
from strand.models.plugin import ArchivePlugin, GitPlugin, GitProvider


class TestGitResolution:
    def test_github_default_ref(self):
        resolved = resolve(GitPlugin(owner="tpope", repo="vim-surround"))
        assert resolved.archive_url == "https://codeload.github.com/tpope/vim-surround/tar.gz/HEAD"
        assert resolved.dest_name == "vim-surround"

    def test_github_with_ref(self):
        resolved = resolve(GitPlugin(owner="tpope", repo="vim-surround", ref="v2.2"))
        assert resolved.archive_url == "https://codeload.github.com/tpope/vim-surround/tar.gz/v2.2"

    def test_gitlab(self):
        spec = GitPlugin(provider=GitProvider.GITLAB, owner="someone", repo="plug", ref="main")
        assert resolve(spec).archive_url == (
            "https://gitlab.com/someone/plug/-/archive/main/plug-main.tar.gz"
        )

    def test_bitbucket(self):
        spec = GitPlugin(provider=GitProvider.BITBUCKET, owner="someone", repo="plug")
        assert resolve(spec).archive_url == "https://bitbucket.org/someone/plug/get/HEAD.tar.gz"

    def test_dest_name_is_repo_regardless_of_provider(self):
        names = {
            resolve(GitPlugin(provider=provider, owner="o", repo="vim-toml")).dest_name
            for provider in GitProvider
        }
        assert names == {"vim-toml"}

    def test_resolution_is_pure(self):
        spec = GitPlugin(owner="o", repo="r", ref="x")
        assert resolve(spec) == resolve(spec)


class TestArchiveResolution:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/dl/vim-foo.tar.gz", "vim-foo"),
            ("https://example.com/dl/vim-foo.tgz", "vim-foo"),
            ("https://example.com/dl/vim-foo.tar.xz", "vim-foo"),
            ("https://example.com/dl/vim-foo.TAR.BZ2", "vim-foo"),
            ("https://example.com/dl/vim-foo.tar", "vim-foo"),
            ("https://example.com/dl/vim-foo/", "vim-foo"),
            ("https://example.com/dl/vim%20foo.tar.gz?token=abc", "vim-foo"),
            ("https://example.com/dl/plugin.v1.2.tar.gz", "plugin.v1.2"),
        ],
    )
    def test_dest_name_from_last_segment(self, url, expected):
        resolved = resolve(ArchivePlugin(url=url))
        assert resolved.archive_url == url
        assert resolved.dest_name == expected

    def test_falls_back_to_host(self):
        assert resolve(ArchivePlugin(url="https://plugins.example.com/")).dest_name == (
            "plugins.example.com"
        )

    def test_dot_dot_segment_is_not_a_destination(self):
        assert resolve(ArchivePlugin(url="https://example.com/a/..")).dest_name == "example.com"
