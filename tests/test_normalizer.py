"""
Unit tests for product name normalization.
"""

from price_verification.matching.normalizer import normalize_text, tokenize


class TestNormalizeText:
    """Test cases for normalize_text."""

    def test_lowercases_and_strips_punctuation(self):
        """Test case folding, punctuation removal and whitespace collapsing."""
        assert normalize_text("  Olive   Oil, 1L! ") == "olive oil 1l"

    def test_empty_and_none(self):
        """Test that missing input normalizes to an empty string."""
        assert normalize_text(None) == ""
        assert normalize_text("") == ""
        assert normalize_text("   ") == ""
        assert normalize_text("!!!") == ""

    def test_keeps_turkish_letters(self):
        """Test that extended Latin letters survive normalization."""
        assert normalize_text("Şeker Ğıda Çay") == "şeker ğıda çay"

    def test_dotted_capital_i(self):
        """Test that a dotted capital I folds to a plain i."""
        assert normalize_text("İstanbul Simit") == "istanbul simit"

    def test_keeps_non_latin_scripts(self):
        """Test that Cyrillic text is kept."""
        assert normalize_text("Молоко 1л") == "молоко 1л"

    def test_composes_decomposed_accents(self):
        """Test that decomposed and precomposed accents normalize alike."""
        assert normalize_text("Cafe\u0301 Latte") == normalize_text("Caf\u00e9 Latte") == "caf\u00e9 latte"

    def test_tabs_and_newlines_collapse(self):
        """Test that every whitespace run becomes one space."""
        assert normalize_text("Sea\tSalt\n500g") == "sea salt 500g"

    def test_idempotent(self):
        """Test that normalizing twice equals normalizing once."""
        samples = [
            "  Olive   Oil, 1L! ",
            "İSTANBUL",
            "Café - Latte",
            "á-b",
            "SKU_00-12/B",
            "Молоко 1л",
            "ŞEKER (1 kg)",
        ]
        for sample in samples:
            once = normalize_text(sample)
            assert normalize_text(once) == once

    def test_dotted_capital_i_with_combining_marks(self):
        """Test that the folded dotted i composes with following accents."""
        assert normalize_text("\u0130\u0301") == "\u00ed"
        assert normalize_text("\u0130\u0307") == "i"
        # combining marks are put in canonical order before the fold
        assert normalize_text("i\u0315\u0307") == "i\u0315"

    def test_idempotent_for_every_code_point(self):
        """Test idempotence for every code point in several contexts."""
        contexts = ["{}", "\u0130{}", "a{}\u0301", "i{}\u0307", "x {} y"]
        failures = []
        for code_point in range(0x20, 0x30000):
            char = chr(code_point)
            for context in contexts:
                once = normalize_text(context.format(char))
                if normalize_text(once) != once:
                    failures.append((hex(code_point), context))

        assert failures == []


class TestTokenize:
    """Test cases for tokenize."""

    def test_drops_short_words(self):
        """Test that words shorter than three characters are dropped."""
        assert tokenize("Extra Virgin Olive Oil 1L") == ["extra", "virgin", "olive", "oil"]

    def test_custom_min_length(self):
        """Test a custom minimum word length."""
        assert tokenize("Sea Salt 500g", min_length=4) == ["salt", "500g"]

    def test_empty(self):
        """Test tokenizing empty input."""
        assert tokenize("") == []
        assert tokenize(None) == []
