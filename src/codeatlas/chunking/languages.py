"""Supported languages and the extension -> grammar registry."""

import importlib
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from tree_sitter import Language as Grammar


class Language(Enum):
    """Closed set of languages codeatlas can chunk.

    Each member's value is its language tag, stored on every chunk.
    """

    PYTHON = "python"
    JAVA = "java"
    GO = "go"
    RUST = "rust"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"

    @property
    def tag(self) -> str:
        return self.value

    @property
    def extensions(self) -> tuple[str, ...]:
        return _EXTENSIONS[self]

    def load_grammar(self) -> Grammar:
        """Load the tree-sitter grammar from its binding package."""
        module_name, func_name = _GRAMMAR_LOADERS[self]
        module = importlib.import_module(module_name)
        return Grammar(getattr(module, func_name)())


_EXTENSIONS: dict[Language, tuple[str, ...]] = {
    Language.PYTHON: (".py", ".pyi"),
    Language.JAVA: (".java",),
    Language.GO: (".go",),
    Language.RUST: (".rs",),
    Language.JAVASCRIPT: (".js", ".mjs", ".cjs", ".jsx"),
    Language.TYPESCRIPT: (".ts", ".mts", ".cts"),
    Language.TSX: (".tsx",),
}

# (module, function returning the grammar capsule)
_GRAMMAR_LOADERS: dict[Language, tuple[str, str]] = {
    Language.PYTHON: ("tree_sitter_python", "language"),
    Language.JAVA: ("tree_sitter_java", "language"),
    Language.GO: ("tree_sitter_go", "language"),
    Language.RUST: ("tree_sitter_rust", "language"),
    Language.JAVASCRIPT: ("tree_sitter_javascript", "language"),
    Language.TYPESCRIPT: ("tree_sitter_typescript", "language_typescript"),
    Language.TSX: ("tree_sitter_typescript", "language_tsx"),
}


def _normalize_extension(filepath_or_extension: str) -> str:
    """Accept ".py", "py", "main.py" or "src/main.py"; return ".py"."""
    value = filepath_or_extension.strip().lower()
    suffix = Path(value).suffix
    if suffix:
        return suffix
    if "/" in value or "\\" in value:
        return ""
    return f".{value.lstrip('.')}" if value else ""


class LanguageRegistry:
    """
    Maps file extensions to languages and their loaded grammars.

    Grammars are loaded once, at construction. The registry is never
    mutated afterwards, so worker threads may share it freely.

    An extension that is unknown, or that belongs to a language this
    registry was not built with, looks up as None: the file is skipped.

    Usage:
        registry = LanguageRegistry()
        language = registry.lookup(".py")       # Language.PYTHON
        grammar = registry.grammar(language)
    """

    def __init__(self, languages: Optional[Iterable[Language]] = None):
        selected = list(Language) if languages is None else list(languages)

        self._grammars: dict[Language, Grammar] = {}
        self._extension_map: dict[str, Language] = {}
        for language in selected:
            self._grammars[language] = language.load_grammar()
            for ext in language.extensions:
                self._extension_map[ext] = language

    def lookup(self, filepath_or_extension: str) -> Optional[Language]:
        """
        Find the language for a file path or extension.

        Args:
            filepath_or_extension: e.g. ".py", "py" or "pkg/module.py"

        Returns:
            The registered Language, or None if no chunking is possible
        """
        return self._extension_map.get(_normalize_extension(filepath_or_extension))

    def grammar(self, language: Language) -> Grammar:
        """Return the loaded grammar for a registered language."""
        try:
            return self._grammars[language]
        except KeyError:
            raise KeyError(f"Language not registered: {language.tag}") from None

    @property
    def languages(self) -> list[Language]:
        return list(self._grammars)

    def supported_extensions(self) -> list[str]:
        """Get list of all supported file extensions."""
        return sorted(self._extension_map)

    def is_supported(self, filepath: str) -> bool:
        """Check if a file type is supported."""
        return self.lookup(filepath) is not None
