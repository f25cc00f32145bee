"""Tests for the language registry."""

import pytest

from codeatlas.chunking.languages import Language, LanguageRegistry


class TestLanguage:
    """Tests for the Language enum."""

    def test_tags(self):
        assert Language.PYTHON.tag == "python"
        assert Language.TSX.tag == "tsx"

    def test_extensions_are_disjoint(self):
        seen = set()
        for language in Language:
            for ext in language.extensions:
                assert ext not in seen
                seen.add(ext)


class TestLanguageRegistry:
    """Tests for LanguageRegistry lookups."""

    def setup_method(self):
        self.registry = LanguageRegistry()

    def test_lookup_forms(self):
        assert self.registry.lookup(".py") is Language.PYTHON
        assert self.registry.lookup("py") is Language.PYTHON
        assert self.registry.lookup("main.py") is Language.PYTHON
        assert self.registry.lookup("src/pkg/module.py") is Language.PYTHON
        assert self.registry.lookup("Main.JAVA") is Language.JAVA

    def test_lookup_each_language(self):
        assert self.registry.lookup("main.go") is Language.GO
        assert self.registry.lookup("lib.rs") is Language.RUST
        assert self.registry.lookup("app.mjs") is Language.JAVASCRIPT
        assert self.registry.lookup("index.ts") is Language.TYPESCRIPT
        assert self.registry.lookup("App.tsx") is Language.TSX

    def test_unsupported_extension(self):
        assert self.registry.lookup(".txt") is None
        assert self.registry.lookup("README") is None
        assert self.registry.lookup("") is None
        assert not self.registry.is_supported("notes.md")

    def test_supported_extensions(self):
        extensions = self.registry.supported_extensions()
        assert extensions == sorted(extensions)
        assert ".py" in extensions
        assert ".rs" in extensions
        assert ".tsx" in extensions

    def test_grammar_loaded_for_every_language(self):
        assert set(self.registry.languages) == set(Language)
        for language in Language:
            assert self.registry.grammar(language) is not None


class TestRegistrySubset:
    """A registry built with some languages treats the rest as unsupported."""

    def setup_method(self):
        self.registry = LanguageRegistry([Language.PYTHON])

    def test_only_selected_language(self):
        assert self.registry.languages == [Language.PYTHON]
        assert self.registry.lookup("main.py") is Language.PYTHON
        assert self.registry.lookup("main.rs") is None

    def test_grammar_for_missing_language(self):
        with pytest.raises(KeyError):
            self.registry.grammar(Language.RUST)
