"""
guardrail_detect/test_sanitizer.py - Sanitizer behaviour
"""
from .sanitizer import sanitize


class TestSanitize:

    def test_non_string(self):
        assert sanitize(None) == ""
        assert sanitize(17) == ""

    def test_strips_traversal_and_shell(self):
        """Traversal, separators and dangerous commands are removed."""
        out = sanitize("../../etc/passwd; rm -rf /")

        assert "../" not in out
        assert ";" not in out
        assert "rm " not in out
        assert out == "etc/passwd -rf /"

    def test_strips_null_bytes(self):
        assert sanitize("file\x00.txt") == "file.txt"

    def test_strips_templates(self):
        assert sanitize("hello {{ config }} world") == "hello  world"

    def test_folds_greek_homographs(self):
        """Greek look-alikes fold to Latin, the rest are dropped."""
        assert sanitize("\u03bfk") == "ok"
        assert sanitize("\u03b2eta") == "eta"

    def test_strips_bidi_and_zero_width(self):
        assert sanitize("ab\u202ecd\u200bef") == "abcdef"
