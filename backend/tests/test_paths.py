"""
Tests for Path Helpers.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from utils.errors import ConfigurationError
from utils.paths import (
    file_extension,
    glob_match,
    relative_to_root,
    resolve_path_spec,
    source_to_dest,
    trim_path,
    validate_config_paths,
)


class TestPathHelpers:
    """Test cases for tree path helpers."""

    def test_file_extension(self):
        """Test extension extraction is lowercase and dotless."""
        assert file_extension("/a/b/App.CSS") == "css"
        assert file_extension("/a/b/_mixins.scss") == "scss"
        assert file_extension("/a/b/README") == ""

    def test_trim_path(self):
        """Test display trimming relative to a root."""
        root = Path("/site/source")
        assert trim_path("/site/source/css/app.css", root) == "/css/app.css"
        assert trim_path("/elsewhere/app.css", root) == "/elsewhere/app.css"

    def test_relative_to_root(self):
        """Test relative paths used in live-reload batches."""
        assert relative_to_root("/site/dest/css/app.css", Path("/site/dest")) == "css/app.css"

    def test_source_to_dest(self):
        """Test mirroring a source path into the destination."""
        mapped = source_to_dest(Path("/s/css/app.css"), Path("/s"), Path("/d"))
        assert mapped == Path("/d/css/app.css")

    def test_source_to_dest_outside_source(self):
        """Test that paths outside the source tree are rejected."""
        with pytest.raises(ValueError):
            source_to_dest(Path("/other/app.css"), Path("/s"), Path("/d"))

    def test_glob_match(self):
        """Test glob matching with a zero-directory double star."""
        assert glob_match("app.css", "**/*.css")
        assert glob_match("css/app.css", "**/*.css")
        assert glob_match("index.html", "*.html")
        assert not glob_match("app.js", "**/*.css")

    def test_glob_wildcards_stay_in_one_segment(self):
        """Test '*' does not cross directories the way '**' does."""
        assert not glob_match("sub/page.html", "*.html")
        assert not glob_match("css/deep/x.css", "css/*.css")
        assert glob_match("css/x.css", "css/*.css")
        assert glob_match("css/deep/x.css", "css/**/*.css")
        assert glob_match("css/deep/x.css", "css/**")


class TestValidateConfigPaths:
    """Test cases for configured path checks."""

    def test_valid_paths(self, tmp_path: Path):
        """Test sibling source and destination directories."""
        validate_config_paths(tmp_path / "source", tmp_path / "dest")

    @pytest.mark.parametrize(
        ("source", "dest"),
        [
            ("", "dest"),
            ("source", ""),
            ("site", "site"),
            ("site", "site/dest"),
            ("site/source", "site"),
        ],
    )
    def test_invalid_paths(self, tmp_path: Path, source: str, dest: str):
        """Test unset, identical and nested paths are rejected."""
        source_path = tmp_path / source if source else None
        dest_path = tmp_path / dest if dest else None

        with pytest.raises(ConfigurationError):
            validate_config_paths(source_path, dest_path)


class TestResolvePathSpec:
    """Test cases for watch path spec resolution."""

    def test_default_watches_whole_root(self, tmp_path: Path):
        """Test that no spec and an empty default glob watch everything."""
        target = resolve_path_spec(None, tmp_path)

        assert target.bases == [(tmp_path, True)]
        assert target.matches(tmp_path / "a" / "b.txt")
        assert not target.matches(tmp_path)
        assert not target.matches(tmp_path.parent / "other.txt")

    def test_default_glob_is_used(self, tmp_path: Path):
        """Test the configured default glob applies when no spec is given."""
        target = resolve_path_spec(None, tmp_path, default_glob="**/*.css")

        assert target.bases == [(tmp_path, True)]
        assert target.matches(tmp_path / "app.css")
        assert target.matches(tmp_path / "css" / "app.css")
        assert not target.matches(tmp_path / "app.js")

    def test_leading_separator_is_stripped(self, tmp_path: Path):
        """Test '/css/*.css' resolves under the root, not the filesystem root."""
        target = resolve_path_spec("/css/*.css", tmp_path)

        assert target.bases == [(tmp_path / "css", True)]
        assert target.description == str(tmp_path / "css" / "*.css")
        assert target.matches(tmp_path / "css" / "app.css")
        assert not target.matches(tmp_path / "app.css")

    def test_root_prefix_is_stripped(self, tmp_path: Path):
        """Test a glob already prefixed with the root is not doubled."""
        target = resolve_path_spec(f"{tmp_path}/*.html", tmp_path)

        assert target.bases == [(tmp_path, True)]
        assert target.matches(tmp_path / "index.html")

    def test_directory_events_pass_file_filters(self, tmp_path: Path):
        """Test structural directory events are not filtered by extension."""
        target = resolve_path_spec("**/*.css", tmp_path)

        assert target.matches(tmp_path / "fonts", is_directory=True)
        assert not target.matches(tmp_path / "fonts")

    def test_explicit_file_list(self, tmp_path: Path):
        """Test an explicit list watches parents and matches exactly."""
        files = [tmp_path / "about.html", tmp_path / "blog" / "post.html"]
        target = resolve_path_spec(files, tmp_path)

        assert sorted(target.bases) == sorted([(tmp_path, False), (tmp_path / "blog", False)])
        assert target.matches(tmp_path / "about.html")
        assert target.matches(tmp_path / "blog" / "post.html")
        assert not target.matches(tmp_path / "index.html")
        assert target.description == [str(f) for f in files]

    def test_empty_file_list_is_rejected(self, tmp_path: Path):
        """Test an empty explicit list is a configuration error."""
        with pytest.raises(ConfigurationError):
            resolve_path_spec([], tmp_path)

    def test_single_existing_file(self, tmp_path: Path):
        """Test a glob-free spec naming a file watches just that file."""
        (tmp_path / "index.html").write_text("")
        target = resolve_path_spec("index.html", tmp_path)

        assert target.bases == [(tmp_path, False)]
        assert target.matches(tmp_path / "index.html")
        assert not target.matches(tmp_path / "about.html")

    def test_root_glob_ignores_nested_files(self, tmp_path: Path):
        """Test '*.html' watches top level pages only."""
        target = resolve_path_spec("*.html", tmp_path)

        assert target.matches(tmp_path / "index.html")
        assert not target.matches(tmp_path / "sub" / "page.html")

    def test_directory_glob_ignores_deeper_files(self, tmp_path: Path):
        """Test 'css/*.css' does not reach into css subdirectories."""
        target = resolve_path_spec("css/*.css", tmp_path)

        assert target.matches(tmp_path / "css" / "app.css")
        assert not target.matches(tmp_path / "css" / "deep" / "x.css")
