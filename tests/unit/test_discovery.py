"""Tests for script discovery."""

import os
from pathlib import Path

import pytest

from script_test_action.discovery import DiscoveryError, discover_scripts, is_excluded

EXTENSIONS = {".sh": "shell", ".ps1": "powershell", ".py": "python"}


def touch(root: Path, relative: str, content: str = "") -> Path:
    """Create a file (and its parents) below root."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestDiscoverScripts:
    """Tests for discover_scripts function."""

    def test_finds_scripts_by_extension(self, tmp_path: Path) -> None:
        """Returns only files whose suffix maps to an interpreter."""
        touch(tmp_path, "ubuntu/cleanup.sh")
        touch(tmp_path, "windows/Setup.ps1")
        touch(tmp_path, "tools/report.py")
        touch(tmp_path, "README.md")
        touch(tmp_path, "autounattend.xml")

        units = discover_scripts(tmp_path, EXTENSIONS)

        assert [u.relative_path for u in units] == [
            "tools/report.py",
            "ubuntu/cleanup.sh",
            "windows/Setup.ps1",
        ]
        assert [u.interpreter for u in units] == ["python", "shell", "powershell"]

    def test_returns_absolute_paths(self, tmp_path: Path) -> None:
        """Each unit carries the absolute path of its file."""
        touch(tmp_path, "a.sh")

        (unit,) = discover_scripts(tmp_path, EXTENSIONS)

        assert unit.path.is_absolute()
        assert unit.path == (tmp_path / "a.sh").resolve()

    def test_matches_extension_case_insensitively(self, tmp_path: Path) -> None:
        """Upper-case suffixes are recognized."""
        touch(tmp_path, "Install.PS1")

        units = discover_scripts(tmp_path, EXTENSIONS)

        assert [u.interpreter for u in units] == ["powershell"]

    def test_returns_sorted_by_relative_path(self, tmp_path: Path) -> None:
        """Order is stable regardless of creation order."""
        for name in ("z.sh", "m/b.sh", "a.sh", "m/a.sh"):
            touch(tmp_path, name)

        units = discover_scripts(tmp_path, EXTENSIONS)

        assert [u.relative_path for u in units] == ["a.sh", "m/a.sh", "m/b.sh", "z.sh"]

    def test_empty_tree_is_valid(self, tmp_path: Path) -> None:
        """Zero scripts is not an error."""
        assert discover_scripts(tmp_path, EXTENSIONS) == []

    def test_excludes_files_by_name_pattern(self, tmp_path: Path) -> None:
        """Patterns match bare file names."""
        touch(tmp_path, "keep.sh")
        touch(tmp_path, "Test-Scripts.ps1")

        units = discover_scripts(tmp_path, EXTENSIONS, exclude=["Test-*.ps1"])

        assert [u.relative_path for u in units] == ["keep.sh"]

    def test_excluded_directory_prunes_subtree(self, tmp_path: Path) -> None:
        """A matching directory hides everything below it."""
        touch(tmp_path, "keep.sh")
        touch(tmp_path, "vendor/lib/skip.sh")

        units = discover_scripts(tmp_path, EXTENSIONS, exclude=["vendor"])

        assert [u.relative_path for u in units] == ["keep.sh"]

    def test_excludes_by_relative_path_glob(self, tmp_path: Path) -> None:
        """Patterns match the whole relative path."""
        touch(tmp_path, "rhel/register.sh")
        touch(tmp_path, "suse/register.sh")

        units = discover_scripts(tmp_path, EXTENSIONS, exclude=["suse/*"])

        assert [u.relative_path for u in units] == ["rhel/register.sh"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_does_not_follow_symlink_cycles(self, tmp_path: Path) -> None:
        """A link back to an ancestor is not walked again."""
        touch(tmp_path, "scripts/a.sh")
        try:
            (tmp_path / "scripts" / "loop").symlink_to(tmp_path, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not permitted")

        units = discover_scripts(tmp_path, EXTENSIONS)

        assert [u.relative_path for u in units] == ["scripts/a.sh"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_follows_symlinked_directories(self, tmp_path: Path) -> None:
        """Links to directories outside the tree are searched once."""
        outside = tmp_path / "outside"
        touch(outside, "shared.sh")
        root = tmp_path / "root"
        root.mkdir()
        try:
            (root / "linked").symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not permitted")

        units = discover_scripts(root, EXTENSIONS)

        assert [u.relative_path for u in units] == ["linked/shared.sh"]

    def test_raises_for_missing_root(self, tmp_path: Path) -> None:
        """Raises DiscoveryError when the root does not exist."""
        with pytest.raises(DiscoveryError, match="does not exist"):
            discover_scripts(tmp_path / "missing", EXTENSIONS)

    def test_raises_when_root_is_a_file(self, tmp_path: Path) -> None:
        """Raises DiscoveryError when the root is not a directory."""
        path = touch(tmp_path, "a.sh")

        with pytest.raises(DiscoveryError, match="not a directory"):
            discover_scripts(path, EXTENSIONS)


class TestIsExcluded:
    """Tests for is_excluded function."""

    @pytest.mark.parametrize(
        ("path", "patterns", "expected"),
        [
            ("a/b/c.sh", ["*.sh"], True),
            ("a/b/c.sh", ["a/*"], True),
            ("a/b/c.sh", ["b"], False),
            ("a/b", ["b"], True),
            ("a/b/c.sh", [], False),
            ("a/b/c.sh", ["*.ps1"], False),
        ],
    )
    def test_matches(self, path: str, patterns: list[str], expected: bool) -> None:
        """Matches either the relative path or the last component."""
        assert is_excluded(path, patterns) is expected
