"""Tests for stop-word filtering."""

from tasklens.query.stop_words import (
    contains_cjk,
    drop_cjk_fragments,
    filter_stop_words,
    is_stop_word,
    split_words,
    tokenize,
)


class TestStopWords:
    """Test stop-word membership and filtering."""

    def test_internal_english_and_chinese_words(self):
        """Built-in stop words in both languages are recognized."""
        assert is_stop_word("the")
        assert is_stop_word("What")
        assert is_stop_word("什么")
        assert not is_stop_word("meeting")

    def test_single_latin_character_is_stop_word(self):
        """A single non-CJK character carries no meaning on its own."""
        assert is_stop_word("x")
        assert is_stop_word("7")

    def test_single_cjk_character_is_kept(self):
        """A single CJK character can be a word."""
        assert not is_stop_word("书")

    def test_user_stop_words(self):
        """Configured stop words are matched case-insensitively."""
        assert is_stop_word("Tasks", extra=["tasks"])
        assert not is_stop_word("tasks")

    def test_filter_preserves_order_and_case(self):
        """Filtering drops stop words and duplicates but keeps first-seen order."""
        words = ["Fix", "the", "Bug", "fix", "in", "登录", "的"]
        assert filter_stop_words(words) == ["Fix", "Bug", "in", "登录"]

    def test_tokenize(self):
        """Tokenizing splits on whitespace and filters."""
        assert tokenize("  how do I fix the   login bug ") == ["fix", "login", "bug"]

    def test_contains_cjk(self):
        """CJK detection covers Chinese and Japanese kana."""
        assert contains_cjk("修复")
        assert contains_cjk("カタカナ")
        assert not contains_cjk("öppen")


class TestSplitWords:
    """Test word splitting and CJK segmentation."""

    def test_punctuation_separates_words(self):
        """Commas and brackets split, while word-internal marks stay."""
        assert split_words("fix (login), follow-up; v1.2 c++") == ["fix", "login", "follow-up", "v1.2", "c++"]

    def test_cjk_run_segmented_into_pairs(self):
        """A CJK run becomes two-character words; their single characters are dropped."""
        assert split_words("修复登录错误") == ["修复", "登录", "错误"]

    def test_odd_cjk_run_keeps_last_character(self):
        """The trailing character of an odd-length run survives on its own."""
        assert split_words("软件开") == ["软件", "开"]

    def test_mixed_scripts(self):
        """Latin words inside CJK text are kept whole."""
        assert split_words("修复API错误") == ["修复", "API", "错误"]

    def test_tokenize_filters_whole_cjk_words(self):
        """如何 is removed as a stop word without leaving 如 and 何 behind."""
        assert tokenize("如何开发") == ["开发"]

    def test_drop_cjk_fragments_keeps_latin_substrings(self):
        """Only CJK fragments of longer CJK words are dropped."""
        assert drop_cjk_fragments(["软件开发", "开发", "fix", "fixed"]) == ["软件开发", "fix", "fixed"]
