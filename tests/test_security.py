"""
Tests for the security service - bearer token validation.
"""
import pytest

from authproxy.services.security import is_authorized


class TestIsAuthorized:
    """Tests for is_authorized function."""

    def test_exact_bearer_token_accepted(self, test_token):
        """The exact "Bearer <token>" header should be accepted."""
        assert is_authorized(f"Bearer {test_token}", test_token) is True

    def test_wrong_token(self, test_token):
        """Another token should be rejected."""
        assert is_authorized("Bearer wrong", test_token) is False

    def test_token_with_suffix(self, test_token):
        """Only an exact match is accepted, not a longer token."""
        assert is_authorized(f"Bearer {test_token}x", test_token) is False

    def test_token_prefix(self, test_token):
        """A substring of the token should be rejected."""
        assert is_authorized(f"Bearer {test_token[:-1]}", test_token) is False

    def test_token_is_case_sensitive(self, test_token):
        """Token comparison is byte-for-byte."""
        assert is_authorized(f"Bearer {test_token.upper()}", test_token) is False

    @pytest.mark.parametrize("header", ["bearer secret123", "Basic secret123", "Token secret123"])
    def test_wrong_scheme(self, header, test_token):
        """Any scheme other than the literal "Bearer" should be rejected."""
        assert is_authorized(header, test_token) is False

    def test_empty_header(self, test_token):
        """Empty header should return False."""
        assert is_authorized("", test_token) is False

    def test_missing_header(self, test_token):
        """A missing header should return False, not raise."""
        assert is_authorized(None, test_token) is False

    def test_header_without_space(self, test_token):
        """A single-part header should return False (not raise IndexError)."""
        assert is_authorized("Bearer", test_token) is False
        assert is_authorized(f"Bearer{test_token}", test_token) is False
        assert is_authorized(test_token, test_token) is False

    def test_double_space(self, test_token):
        """Extra whitespace makes the second part differ from the token."""
        assert is_authorized(f"Bearer  {test_token}", test_token) is False

    def test_trailing_text_after_token(self, test_token):
        """Header splits into at most two parts, so trailing text is part of the token."""
        assert is_authorized(f"Bearer {test_token} extra", test_token) is False

    def test_empty_configured_token_never_matches(self):
        """An empty configured token should never authorize anything."""
        assert is_authorized("Bearer ", "") is False

    def test_non_ascii_token(self):
        """Non-ASCII tokens compare correctly instead of raising."""
        assert is_authorized("Bearer päss", "päss") is True
        assert is_authorized("Bearer pass", "päss") is False
