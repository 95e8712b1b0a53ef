"""Tests for thread body sanitization and related normalization helpers."""

from app.utils.normalization import (
    escape_like,
    mask_email,
    normalize_email,
    normalize_search_text,
    preview_text,
    sanitize_thread_body,
)


class TestSanitizeThreadBody:
    def test_plain_text_unchanged(self):
        assert sanitize_thread_body("Looks great, thanks!") == "Looks great, thanks!"

    def test_strips_tags_but_keeps_text(self):
        assert sanitize_thread_body("<b>Bold</b> and <i>italic</i>") == "Bold and italic"

    def test_drops_script_and_style_content(self):
        raw = "Hello<script>alert('x')</script><style>p{color:red}</style> world"
        assert sanitize_thread_body(raw) == "Hello world"

    def test_decodes_entities_to_plain_text(self):
        assert sanitize_thread_body("5 &lt; 6 &amp;&amp; 7 &gt; 3") == "5 < 6 && 7 > 3"

    def test_removes_control_and_zero_width_characters(self):
        raw = "ab\x00c\x07d\u200be\u2060f\ufeff"
        assert sanitize_thread_body(raw) == "abcdef"

    def test_keeps_newlines_and_collapses_horizontal_whitespace(self):
        raw = "  first   line \t here \n\n second  line  "
        assert sanitize_thread_body(raw) == "first line here\n\nsecond line"

    def test_collapses_runs_of_blank_lines(self):
        assert sanitize_thread_body("a\n\n\n\n\nb") == "a\n\nb"

    def test_normalizes_carriage_returns(self):
        assert sanitize_thread_body("a\r\nb\rc") == "a\nb\nc"

    def test_markup_only_input_is_empty(self):
        assert sanitize_thread_body("<p> </p><script>x</script>") == ""

    def test_none_and_whitespace_are_empty(self):
        assert sanitize_thread_body(None) == ""
        assert sanitize_thread_body(" \n\t \u200b ") == ""


def test_preview_text_truncates_with_ellipsis():
    text = "word " * 100
    preview = preview_text(text, 20)
    assert len(preview) <= 20
    assert preview.endswith("…")
    assert preview_text("short", 20) == "short"


def test_mask_email_hides_local_part():
    assert mask_email("jamie.rivera@example.com") == "jam...@example.com"
    assert mask_email(None) == ""


def test_normalize_email_lowercases_and_trims():
    assert normalize_email("  Jamie@Example.COM ") == "jamie@example.com"
    assert normalize_email("") is None


def test_search_text_and_like_escaping():
    assert normalize_search_text("  rivera   bakery ") == "rivera bakery"
    assert normalize_search_text("   ") is None
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
