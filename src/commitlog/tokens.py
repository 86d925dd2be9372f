"""Helpers for the opaque per-request access token."""


def is_blank(value: str | None) -> bool:
    """Return True for None, empty or whitespace-only strings."""
    return value is None or not value.strip()


def resolve_token(header_token: str | None, param_token: str | None) -> str | None:
    """Pick the token to use when it can arrive from two places.

    The header value wins whenever it is non-blank.

    Args:
        header_token: Token from the provider-specific header (or CLI flag).
        param_token: Token from the query parameter (or configured default).

    Returns:
        The chosen token, possibly None.
    """
    if not is_blank(header_token):
        return header_token
    return param_token


def mask_token(token: str | None) -> str:
    """Render a token safe for log output.

    Examples:
        >>> mask_token("")
        'empty'
        >>> mask_token("short")
        '****'
        >>> mask_token("ghp_1234567890abcd")
        'ghp_****abcd'
    """
    if is_blank(token):
        return "empty"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}****{token[-4:]}"
