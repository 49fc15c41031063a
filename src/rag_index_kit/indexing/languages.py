"""Language detection and tree-sitter grammar loading.

Grammar packages are imported lazily. A language whose package is not
installed has no syntax-aware path and is chunked with window splitting.
"""

import importlib
import importlib.util
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import PurePath
from typing import Any

logger = logging.getLogger(__name__)

# Language detection by extension
LANGUAGE_MAP: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
    ".pyi": "python",
    ".md": "markdown",
    ".markdown": "markdown",
    ".json": "json",
    ".css": "css",
    ".html": "html",
    ".htm": "html",
    ".xml": "xml",
}

_JS_BOUNDARIES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "method_definition",
        "lexical_declaration",
        "variable_declaration",
        "export_statement",
        "comment",
    }
)

_TS_BOUNDARIES = _JS_BOUNDARIES | {
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
    "abstract_class_declaration",
    "module",
}


@dataclass(frozen=True)
class LanguageSpec:
    """Grammar source and boundary node types for one language.

    Attributes:
        package: Python package shipping the grammar.
        loader: Function in ``package`` returning the language pointer.
        boundary_types: Node types that make good chunk boundaries.
    """

    package: str
    loader: str
    boundary_types: frozenset[str]


LANGUAGE_SPECS: dict[str, LanguageSpec] = {
    "python": LanguageSpec(
        package="tree_sitter_python",
        loader="language",
        boundary_types=frozenset(
            {"function_definition", "class_definition", "decorated_definition", "comment"}
        ),
    ),
    "javascript": LanguageSpec(
        package="tree_sitter_javascript",
        loader="language",
        boundary_types=_JS_BOUNDARIES,
    ),
    "typescript": LanguageSpec(
        package="tree_sitter_typescript",
        loader="language_typescript",
        boundary_types=_TS_BOUNDARIES,
    ),
    "tsx": LanguageSpec(
        package="tree_sitter_typescript",
        loader="language_tsx",
        boundary_types=_TS_BOUNDARIES | {"jsx_element", "jsx_self_closing_element"},
    ),
    "json": LanguageSpec(
        package="tree_sitter_json",
        loader="language",
        boundary_types=frozenset({"object", "array"}),
    ),
    "css": LanguageSpec(
        package="tree_sitter_css",
        loader="language",
        boundary_types=frozenset(
            {
                "rule_set",
                "at_rule",
                "media_statement",
                "import_statement",
                "keyframes_statement",
                "comment",
            }
        ),
    ),
    "html": LanguageSpec(
        package="tree_sitter_html",
        loader="language",
        boundary_types=frozenset({"element", "script_element", "style_element", "comment"}),
    ),
    "xml": LanguageSpec(
        package="tree_sitter_xml",
        loader="language_xml",
        boundary_types=frozenset({"element", "Comment"}),
    ),
}


def detect_language(file_path: str | PurePath) -> str | None:
    """Detect language from a file extension.

    Args:
        file_path: File path or name.

    Returns:
        Language identifier, or None for unknown extensions.
    """
    suffix = PurePath(file_path).suffix.lower()
    return LANGUAGE_MAP.get(suffix)


def has_syntax_support(language: str | None) -> bool:
    """Whether a syntax-aware chunking path exists for ``language``."""
    if language is None:
        return False
    spec = LANGUAGE_SPECS.get(language)
    if spec is None:
        return False
    return (
        importlib.util.find_spec("tree_sitter") is not None
        and importlib.util.find_spec(spec.package) is not None
    )


@lru_cache(maxsize=None)
def load_language(language: str) -> Any:
    """Load the tree-sitter Language object for ``language``.

    Raises:
        KeyError: If the language has no grammar entry.
        ImportError: If tree-sitter or the grammar package is not installed.
    """
    from tree_sitter import Language

    spec = LANGUAGE_SPECS[language]
    module = importlib.import_module(spec.package)
    ts_language = Language(getattr(module, spec.loader)())
    logger.debug(f"Loaded tree-sitter grammar for {language} from {spec.package}")
    return ts_language


def parse(content: str, language: str) -> Any:
    """Parse ``content`` and return the tree-sitter Tree.

    A fresh Parser is created per call; Language objects are cached.
    """
    from tree_sitter import Parser

    parser = Parser(load_language(language))
    return parser.parse(content.encode("utf-8"))
