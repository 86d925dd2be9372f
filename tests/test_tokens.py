"""Tests for token helpers."""

from commitlog.tokens import is_blank, mask_token, resolve_token


class TestTokens:
    """Tests for token helpers."""

    def test_is_blank(self) -> None:
        """Test blank detection."""
        assert is_blank(None)
        assert is_blank("")
        assert is_blank("  \t")
        assert not is_blank("x")

    def test_header_takes_precedence(self) -> None:
        """Test the header token wins."""
        assert resolve_token("from-header", "from-param") == "from-header"

    def test_param_used_when_header_blank(self) -> None:
        """Test the param token is the fallback."""
        assert resolve_token("  ", "from-param") == "from-param"
        assert resolve_token(None, "from-param") == "from-param"
        assert resolve_token(None, None) is None

    def test_mask_token(self) -> None:
        """Test token masking."""
        assert mask_token(None) == "empty"
        assert mask_token("") == "empty"
        assert mask_token("12345678") == "****"
        assert mask_token("ghp_abcdefgh1234") == "ghp_****1234"
