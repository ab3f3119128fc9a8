"""Security utilities for opaque lookup tokens.

WHAT:
    Derives the one-way tokens that stand in for raw database ids in share
    links, emailed links and the `member_id` identity cookie.

WHY:
    - Links must not expose sequential ids.
    - Tokens are never decrypted. A token is matched by recomputing it for
      candidate ids (see app/services/token_service.py).
    - The key comes from configuration, so a token minted years ago in an
      email keeps resolving after restarts and redeploys.

REFERENCES:
    - app/services/token_service.py (TokenCodec, IdentityCookieIssuer)
    - app/deps.py (TOKEN_HASH_SECRET)
"""

import hashlib
import hmac


TOKEN_LENGTH = 32

# Scopes keep a member id and a sent-email id with the same value from
# producing the same token.
MEMBER_SCOPE = "member"
SENT_EMAIL_SCOPE = "sent_email"


def derive_token(scope: str, identifier: int, secret: str) -> str:
    """Return the lookup token for `identifier` within `scope`.

    HMAC-SHA256 keyed with `secret` over "<scope>:<identifier>", hex encoded
    and truncated to TOKEN_LENGTH characters.
    """
    if not secret:
        raise ValueError("Token secret must not be empty")

    digest = hmac.new(
        secret.encode("utf-8"),
        f"{scope}:{identifier}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest[:TOKEN_LENGTH]


def tokens_match(expected: str, candidate: str) -> bool:
    """Constant-time comparison of two tokens."""
    return hmac.compare_digest(expected, candidate)
