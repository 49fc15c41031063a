"""Ignore-pattern evaluation for discovery and watch events.

Patterns are fnmatch globs checked against the workspace-relative path,
the file name and each path component. ``.gitignore`` lines are converted
to the same glob form; negations are not supported.
"""

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from rag_index_kit.constants import ALWAYS_IGNORED_DIRS, GITIGNORE_FILE

logger = logging.getLogger(__name__)


def load_gitignore(project_root: Path) -> list[str]:
    """Load patterns from .gitignore and convert them to glob patterns."""
    gitignore_path = project_root / GITIGNORE_FILE
    if not gitignore_path.exists():
        logger.debug(".gitignore file not found, skipping")
        return []

    patterns = []
    try:
        with open(gitignore_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or line.startswith("!"):
                    continue

                rooted = line.startswith("/")
                clean = line.strip("/")
                if not clean:
                    continue
                if line.endswith("/"):
                    # 'build/' -> 'build/**' (+ '**/build/**' unless rooted)
                    patterns.append(f"{clean}/**")
                    if not rooted:
                        patterns.append(f"**/{clean}/**")
                else:
                    patterns.append(clean)
                    if not rooted:
                        patterns.append(f"**/{clean}")

        logger.info(f"Loaded {len(patterns)} patterns from .gitignore")
        return patterns
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to load .gitignore: {e}")
        return []


def _glob_match(path_str: str, name: str, pattern: str) -> bool:
    if fnmatch.fnmatch(path_str, pattern) or fnmatch.fnmatch(name, pattern):
        return True
    # '**/x' also matches 'x' at the workspace root
    if pattern.startswith("**/"):
        return fnmatch.fnmatch(path_str, pattern[3:])
    return False


class IgnoreMatcher:
    """Decides whether a workspace-relative path is indexed.

    Attributes:
        exclude_patterns: Configured excludes merged with .gitignore globs.
        include_patterns: When non-empty, files must match one of these.
    """

    def __init__(
        self,
        exclude_patterns: Iterable[str] = (),
        include_patterns: Iterable[str] = (),
        gitignore_patterns: Iterable[str] = (),
    ):
        self.exclude_patterns: list[str] = []
        for pattern in [*exclude_patterns, *gitignore_patterns]:
            if pattern not in self.exclude_patterns:
                self.exclude_patterns.append(pattern)
        self.include_patterns = list(include_patterns)

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        exclude_patterns: Iterable[str] = (),
        include_patterns: Iterable[str] = (),
        respect_gitignore: bool = True,
    ) -> "IgnoreMatcher":
        """Build a matcher, reading the project's .gitignore if requested."""
        gitignore = load_gitignore(project_root) if respect_gitignore else []
        return cls(exclude_patterns, include_patterns, gitignore)

    def get_ignore_pattern(self, relative_path: str | PurePosixPath) -> str | None:
        """Get the exclude pattern that matches a path.

        Returns:
            The matching pattern, or None if no exclude pattern matches.
        """
        path = PurePosixPath(relative_path)
        path_str = path.as_posix()
        parts = path.parts

        for pattern in self.exclude_patterns:
            if _glob_match(path_str, path.name, pattern):
                return pattern
            # Bare directory names ("vendor") and globs over components ("node_*")
            if any(fnmatch.fnmatch(part, pattern) for part in parts):
                return pattern
            # Path prefixes such as "docs/generated"
            if "/" in pattern and path_str.startswith(pattern.rstrip("/") + "/"):
                return pattern
        return None

    def is_dir_ignored(self, relative_dir: str | PurePosixPath) -> bool:
        """Whether discovery should skip descending into a directory."""
        path = PurePosixPath(relative_dir)
        if any(part.startswith(".") or part in ALWAYS_IGNORED_DIRS for part in path.parts):
            return True
        return self.get_ignore_pattern(path) is not None

    def is_ignored(self, relative_path: str | PurePosixPath) -> bool:
        """Whether a file is excluded from the index."""
        path = PurePosixPath(relative_path)
        path_str = path.as_posix()
        if path_str in ("", ".") or path_str.startswith("../"):
            return True
        if any(part.startswith(".") or part in ALWAYS_IGNORED_DIRS for part in path.parts):
            return True
        if self.get_ignore_pattern(path) is not None:
            return True
        if self.include_patterns:
            return not any(
                _glob_match(path_str, path.name, pattern) for pattern in self.include_patterns
            )
        return False

    def add_exclude(self, pattern: str) -> None:
        """Add an exclude pattern (e.g. a vector DB directory inside the workspace)."""
        if pattern not in self.exclude_patterns:
            self.exclude_patterns.append(pattern)
