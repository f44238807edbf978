"""Install check tests.

A version counts as installed only if DEST/VERSION/bin/git runs and
reports that version. Every other outcome is "not installed".
"""

import subprocess

from conftest import write_fake_git
from relbuild.install_check import install_dir, installed_binary, is_installed


class TestIsInstalled:
    """Tests for probing an install."""

    def test_layout(self, destination):
        assert install_dir(destination, "1.7.5") == destination / "1.7.5"
        assert installed_binary(destination, "1.7.5") == destination / "1.7.5" / "bin" / "git"

    def test_installed(self, destination):
        write_fake_git(destination / "1.7.5", "1.7.5")
        assert is_installed("1.7.5", destination)

    def test_release_candidate_reported_with_dots(self, destination):
        write_fake_git(destination / "1.7.5.rc0", "1.7.5.rc0")
        assert is_installed("1.7.5.rc0", destination)

    def test_release_candidate_reported_with_dash(self, destination):
        """The reported version goes through the same normalization."""
        write_fake_git(destination / "1.7.5.rc0", "1.7.5-rc0")
        assert is_installed("1.7.5.rc0", destination)

    def test_missing_binary(self, destination):
        assert not is_installed("1.7.5", destination)

    def test_missing_destination(self, tmp_path):
        assert not is_installed("1.7.5", tmp_path / "does-not-exist")

    def test_version_mismatch(self, destination):
        write_fake_git(destination / "1.7.5", "1.7.4")
        assert not is_installed("1.7.5", destination)

    def test_probe_fails(self, destination):
        write_fake_git(destination / "1.7.5", "1.7.5", exit_code=1)
        assert not is_installed("1.7.5", destination)

    def test_garbage_output(self, destination):
        binary = destination / "1.7.5" / "bin" / "git"
        binary.parent.mkdir(parents=True)
        binary.write_text("#!/bin/sh\necho 'segmentation fault'\n")
        binary.chmod(0o755)
        assert not is_installed("1.7.5", destination)

    def test_not_executable(self, destination):
        binary = write_fake_git(destination / "1.7.5", "1.7.5")
        binary.chmod(0o644)
        assert not is_installed("1.7.5", destination)

    def test_timeout(self, destination, monkeypatch):
        write_fake_git(destination / "1.7.5", "1.7.5")

        def hang(*args, **kwargs):
            raise subprocess.TimeoutExpired(args[0], 10)

        monkeypatch.setattr("relbuild.install_check.subprocess.run", hang)
        assert not is_installed("1.7.5", destination)
