"""Tests for content decoding and mergeability checks."""

import pytest

from vault_sync.content import decode_content, encode_content, is_mergeable


class TestDecodeContent:
    def test_empty(self):
        assert decode_content(b"") == ("", "utf-8")

    def test_ascii_reported_as_utf8(self):
        content, encoding = decode_content(b"# Title\n\nplain text\n")
        assert content == "# Title\n\nplain text\n"
        assert encoding.replace("_", "-") == "utf-8"

    def test_utf8(self):
        text = "Café notes: résumé, naïve ideas and a déjà vu entrée.\n" * 4
        content, _ = decode_content(text.encode("utf-8"))
        assert content == text

    def test_encode_is_utf8(self):
        assert encode_content("Café") == b"Caf\xc3\xa9"


class TestIsMergeable:
    @pytest.mark.parametrize("key", ["a.md", "dir/b.TXT", "c.canvas"])
    def test_default_extensions(self, key):
        assert is_mergeable(key)

    @pytest.mark.parametrize("key", ["a.png", "b.pdf", "notes/"])
    def test_not_mergeable(self, key):
        assert not is_mergeable(key)

    def test_custom_extensions_without_dot(self):
        assert is_mergeable("data.json", ("json",))
        assert not is_mergeable("a.md", ("json",))
