"""Tests for LookupResult."""

from gitnexus_bridge.result import LookupResult


class TestLookupResult:
    """Tests for LookupResult construction and truthiness."""

    def test_ok_trims(self):
        result = LookupResult.ok("  callers: 3\n\n")
        assert result.text == "callers: 3"
        assert result.status == "ok"
        assert result.success is True
        assert bool(result) is True

    def test_ok_blank_is_empty(self):
        result = LookupResult.ok("  \n\t")
        assert result.status == "empty"
        assert result.text == ""
        assert not result

    def test_truncates_to_exact_limit(self):
        result = LookupResult.ok("x" * 100, limit=40)
        assert len(result.text) == 40
        assert result.truncated is True

    def test_at_limit_not_truncated(self):
        result = LookupResult.ok("x" * 40, limit=40)
        assert len(result.text) == 40
        assert result.truncated is False

    def test_failures_have_empty_text(self):
        for result in (
            LookupResult.empty("nothing"),
            LookupResult.error("exit code 1"),
            LookupResult.timeout(8.0),
        ):
            assert result.text == ""
            assert not result

    def test_timeout_detail(self):
        result = LookupResult.timeout(8.0)
        assert result.status == "timeout"
        assert "8.0" in (result.detail or "")

    def test_repr(self):
        assert repr(LookupResult.ok("abc")) == "<LookupResult ok, 3 chars>"
        assert repr(LookupResult.error("boom")) == "<LookupResult error, boom>"
        assert repr(LookupResult()) == "<LookupResult empty>"
