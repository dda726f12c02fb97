"""Tests for canonical/compact id conversion."""

from notion_blog.ids import is_uuid, to_canonical, to_compact

CANONICAL = "12345678-1234-1234-1234-123456789abc"
COMPACT = "12345678123412341234123456789abc"


class TestToCompact:
    def test_strips_separators(self):
        assert to_compact(CANONICAL) == COMPACT

    def test_compact_is_unchanged(self):
        assert to_compact(COMPACT) == COMPACT

    def test_idempotent(self):
        for value in (CANONICAL, COMPACT, "a-b-c", ""):
            assert to_compact(to_compact(value)) == to_compact(value)

    def test_none_becomes_empty(self):
        assert to_compact(None) == ""

    def test_malformed_input_still_stripped(self):
        assert to_compact("not-an-id") == "notanid"


class TestToCanonical:
    def test_inserts_separators(self):
        assert to_canonical(COMPACT) == CANONICAL

    def test_round_trip(self):
        for canonical in (CANONICAL, "a1b2c3d4-e5f6-7890-abcd-ef1234567890"):
            assert to_canonical(to_compact(canonical)) == canonical

    def test_preserves_case(self):
        assert to_canonical("12345678123412341234123456789ABC") == "12345678-1234-1234-1234-123456789ABC"

    def test_canonical_input_unchanged(self):
        assert to_canonical(CANONICAL) == CANONICAL

    def test_wrong_length_unchanged(self):
        assert to_canonical("1234567") == "1234567"
        assert to_canonical(COMPACT + "ff") == COMPACT + "ff"

    def test_non_hex_unchanged(self):
        value = "zz345678123412341234123456789abc"
        assert to_canonical(value) == value

    def test_compact_of_canonical_matches_compact(self):
        for value in (COMPACT, "short", ""):
            assert to_compact(to_canonical(value)) == to_compact(value)

    def test_none_becomes_empty(self):
        assert to_canonical(None) == ""


class TestIsUuid:
    def test_accepts_both_forms(self):
        assert is_uuid(CANONICAL)
        assert is_uuid(COMPACT)

    def test_rejects_other_strings(self):
        assert not is_uuid("abc")
        assert not is_uuid(None)
