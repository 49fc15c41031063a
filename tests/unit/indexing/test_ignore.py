"""Tests for ignore-pattern evaluation."""

from pathlib import Path

from rag_index_kit.indexing.ignore import IgnoreMatcher, load_gitignore


class TestIgnoreMatcher:
    """Test exclude/include decisions."""

    def test_hidden_and_always_ignored_dirs(self):
        matcher = IgnoreMatcher()

        assert matcher.is_ignored(".env")
        assert matcher.is_ignored(".git/config")
        assert matcher.is_ignored("web/node_modules/react/index.js")
        assert not matcher.is_ignored("src/app.py")

    def test_file_name_pattern(self):
        matcher = IgnoreMatcher(exclude_patterns=["*.log"])

        assert matcher.is_ignored("logs/server.log")
        assert matcher.get_ignore_pattern("server.log") == "*.log"
        assert matcher.get_ignore_pattern("server.py") is None

    def test_directory_component_pattern(self):
        matcher = IgnoreMatcher(exclude_patterns=["dist"])

        assert matcher.is_ignored("packages/ui/dist/bundle.js")
        assert matcher.is_dir_ignored("dist")

    def test_path_prefix_pattern(self):
        matcher = IgnoreMatcher(exclude_patterns=["docs/generated"])

        assert matcher.is_ignored("docs/generated/api.md")
        assert not matcher.is_ignored("docs/guide.md")

    def test_double_star_matches_at_root(self):
        matcher = IgnoreMatcher(exclude_patterns=["**/build/**"])

        assert matcher.is_ignored("build/out.js")
        assert matcher.is_ignored("app/build/out.js")

    def test_include_patterns_restrict(self):
        matcher = IgnoreMatcher(include_patterns=["*.py", "*.md"])

        assert not matcher.is_ignored("src/app.py")
        assert not matcher.is_ignored("README.md")
        assert matcher.is_ignored("src/app.ts")

    def test_exclude_beats_include(self):
        matcher = IgnoreMatcher(exclude_patterns=["test_*"], include_patterns=["*.py"])

        assert matcher.is_ignored("tests_dir/test_app.py")

    def test_paths_outside_workspace(self):
        matcher = IgnoreMatcher()

        assert matcher.is_ignored("../other/file.py")
        assert matcher.is_ignored(".")

    def test_add_exclude(self):
        matcher = IgnoreMatcher()
        matcher.add_exclude("vectors")
        matcher.add_exclude("vectors")

        assert matcher.exclude_patterns == ["vectors"]
        assert matcher.is_ignored("vectors/chroma.sqlite3")


class TestGitignore:
    """Test .gitignore loading."""

    def test_missing_gitignore(self, tmp_path: Path):
        assert load_gitignore(tmp_path) == []

    def test_patterns_converted(self, tmp_path: Path):
        (tmp_path / ".gitignore").write_text(
            "# comment\n\n*.pyc\nbuild/\n/secrets.txt\n!keep.pyc\n"
        )

        patterns = load_gitignore(tmp_path)

        assert "*.pyc" in patterns
        assert "build/**" in patterns
        assert "**/build/**" in patterns
        assert "secrets.txt" in patterns
        assert "**/secrets.txt" not in patterns
        assert not any("keep" in p for p in patterns)

    def test_for_project_respects_flag(self, tmp_path: Path):
        (tmp_path / ".gitignore").write_text("*.tmp\n")

        assert IgnoreMatcher.for_project(tmp_path).is_ignored("a.tmp")
        assert not IgnoreMatcher.for_project(tmp_path, respect_gitignore=False).is_ignored(
            "a.tmp"
        )
