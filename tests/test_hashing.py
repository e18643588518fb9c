"""Tests for workflow/hashing.py: artifact content hash."""

from __future__ import annotations

from docflow.workflow.hashing import content_hash


class TestContentHash:
    def test_empty_content(self):
        assert content_hash("") == "0"

    def test_known_values(self):
        assert content_hash("a") == "2p"
        assert content_hash("ab") == "2e9"

    def test_stable_across_calls(self):
        body = "# PRD\n\nREQ-AUTH-001: User login\n"
        assert content_hash(body) == content_hash(body)

    def test_order_sensitive(self):
        assert content_hash("ab") != content_hash("ba")

    def test_wraps_to_signed_32_bit(self):
        h = content_hash("x" * 200)
        value = int(h, 36)
        assert -(2**31) <= value < 2**31

    def test_negative_hash_has_sign(self):
        # Long inputs overflow into the negative half of the 32-bit range sometimes.
        hashes = [content_hash(f"artifact body {i}" * 20) for i in range(50)]
        assert any(h.startswith("-") for h in hashes)
        assert all(h.lstrip("-").isalnum() for h in hashes)

    def test_non_bmp_characters_use_surrogate_pairs(self):
        # One astral character is two UTF-16 code units.
        high, low = 0xD83D, 0xDE00
        expected = (high * 31 + low) & 0xFFFFFFFF
        assert int(content_hash("\U0001F600"), 36) == expected
