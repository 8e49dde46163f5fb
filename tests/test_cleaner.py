"""Tests for TextCleaner."""

import pytest

from rolling_memory.core.cleaner import TextCleaner, clean


@pytest.fixture
def cleaner():
    return TextCleaner()


class TestTextCleaner:
    def test_plain_text_untouched(self, cleaner):
        assert cleaner.clean("Alice met Bob.") == "Alice met Bob."

    def test_none_and_empty(self, cleaner):
        assert cleaner.clean(None) == ""
        assert cleaner.clean("") == ""
        assert cleaner.clean("   \n\t ") == ""

    def test_tags_replaced_by_space(self, cleaner):
        assert cleaner.clean("<b>Hi</b>there") == "Hi there"
        assert cleaner.clean('She <span class="x">smiled</span>.') == "She smiled ."

    def test_whitespace_collapsed(self, cleaner):
        assert cleaner.clean("  a \n\n b\t\tc  ") == "a b c"

    def test_code_fence_keeps_inner_text(self, cleaner):
        raw = "Before\n```python\nprint(1)\n```\nAfter"
        assert cleaner.clean(raw) == "Before print(1) After"

    def test_fence_language_only_consumed_at_line_end(self, cleaner):
        assert cleaner.clean("```hello world```") == "hello world"

    def test_details_block_removed(self, cleaner):
        raw = "She waved.<details><summary>OOC</summary>notes</details> Then left."
        assert cleaner.clean(raw) == "She waved. Then left."

    def test_think_block_removed(self, cleaner):
        assert cleaner.clean("<think>plan the reply</think>Hello.") == "Hello."

    def test_stats_block_removed(self, cleaner):
        raw = "**Stats**\nHP: 10\nMP: 5\n\nShe smiled."
        assert cleaner.clean(raw) == "She smiled."

    def test_stats_block_at_end(self, cleaner):
        raw = "He drew his sword.\n\n[Status]\nHP: 3/10"
        assert cleaner.clean(raw) == "He drew his sword."

    @pytest.mark.regression("BUG-007")
    def test_stats_header_in_markup_keeps_following_paragraph(self, cleaner):
        raw = "<b>Status:</b> HP 10\n\nAlice drew her sword and charged."
        once = cleaner.clean(raw)
        assert once == "Alice drew her sword and charged."
        assert cleaner.clean(once) == once

    def test_stats_header_followed_by_blank_line(self, cleaner):
        raw = "Status: HP 10\n\nShe smiled.\nThen she left."
        assert cleaner.clean(raw) == "She smiled. Then she left."

    def test_single_line_mentioning_status_kept(self, cleaner):
        assert cleaner.clean("Status: fine. Alice waved.") == "Status: fine. Alice waved."
        assert cleaner.clean("Status quo remained.\n\nBob left.") == "Status quo remained. Bob left."

    def test_idempotent(self, cleaner):
        samples = [
            "<<b>>nested<</b>>",
            "**Stats**\nHP: 1\n\n<i>text</i>   more",
            "```\ncode\n```<br/>tail",
            "<details><b>x</b></details>ok",
            "<b>Status:</b> HP 10\n\nAlice drew her sword and charged.",
            "Stats\nHP: 2\n\n<i>Bob</i>\n\nran",
        ]
        for raw in samples:
            once = cleaner.clean(raw)
            assert cleaner.clean(once) == once

    def test_custom_patterns_replace_defaults(self):
        cleaner = TextCleaner([r"\(OOC:[^)]*\)"])
        assert cleaner.clean("Hi (OOC: brb) there") == "Hi there"
        # Defaults no longer apply
        assert cleaner.clean("<think>x</think>y") == "x y"

    def test_invalid_pattern_skipped(self, caplog):
        cleaner = TextCleaner([r"(unclosed", r"drop"])
        assert cleaner.clean("keep drop keep") == "keep keep"
        assert "invalid kill pattern" in caplog.text.lower()

    def test_module_clean_uses_defaults(self):
        assert clean("<think>x</think> Hi") == "Hi"
