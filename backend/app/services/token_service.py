"""Token service for deriving and resolving opaque entity tokens.

WHAT:
    Wraps the derivation helper in app/security.py and encapsulates how
    tokens are indexed on, and looked up from, member and sent-email rows.

WHY:
    - Tokens are one-way: "decoding" one means finding the row whose
      recomputed token matches, never inverting it.
    - The `token` column is the lookup index. It is filled when rows are
      created through this service and back-filled on demand for rows that
      were inserted elsewhere (imports, fixtures, older data).

REFERENCES:
    - backend/app/security.py (derive_token)
    - backend/app/services/referral_resolver.py (consumes both codecs)
"""

from __future__ import annotations

import logging
from typing import Optional, Type

from sqlalchemy.orm import Session

from app.models import Member, SentEmail
from app.security import MEMBER_SCOPE, SENT_EMAIL_SCOPE, derive_token, tokens_match

logger = logging.getLogger(__name__)


class TokenCodec:
    """Derive tokens for one scope and resolve them back to rows.

    Usage:
        codec = TokenCodec(db, "member", Member, secret)
        token = codec.encode(member.id)
        assert codec.resolve(token) == member
    """

    def __init__(self, db: Session, scope: str, model: Type, secret: str):
        self.db = db
        self.scope = scope
        self.model = model
        self.secret = secret

    def encode(self, identifier: int) -> str:
        return derive_token(self.scope, identifier, self.secret)

    def assign(self, entity) -> str:
        """Store the entity's token in its indexed `token` column.

        Flushes first when the entity has no primary key yet.
        """
        if entity.id is None:
            self.db.flush()
        entity.token = self.encode(entity.id)
        return entity.token

    def resolve(self, token: Optional[str]):
        """Return the row whose token equals `token`, or None.

        Looks in the index first. On a miss, rows that have not been indexed
        yet get their token recomputed and stored, and the match (if any) is
        returned. Unknown tokens are not an error.
        """
        if not token or not token.strip():
            return None
        token = token.strip()

        entity = (
            self.db.query(self.model)
            .filter(self.model.token == token)
            .first()
        )
        if entity:
            return entity

        match = None
        unindexed = (
            self.db.query(self.model)
            .filter(self.model.token.is_(None))
            .all()
        )
        for candidate in unindexed:
            candidate.token = self.encode(candidate.id)
            if match is None and tokens_match(candidate.token, token):
                match = candidate

        if unindexed:
            logger.info(
                f"[TOKENS] Indexed {len(unindexed)} {self.scope} rows while resolving a token"
            )
        if match is None:
            logger.debug(f"[TOKENS] No {self.scope} matches token {token[:8]}...")
        return match

    def rebuild_index(self) -> int:
        """Recompute the token of every row in this scope.

        Needed after TOKEN_HASH_SECRET changes. Returns the number of rows
        whose stored token changed. Does not commit.
        """
        updated = 0
        for entity in self.db.query(self.model).all():
            token = self.encode(entity.id)
            if entity.token != token:
                entity.token = token
                updated += 1
        logger.info(f"[TOKENS] Rebuilt {self.scope} token index ({updated} rows updated)")
        return updated


class TokenService:
    """Both token scopes bound to one session."""

    def __init__(self, db: Session, secret: str):
        self.members = TokenCodec(db, MEMBER_SCOPE, Member, secret)
        self.sent_emails = TokenCodec(db, SENT_EMAIL_SCOPE, SentEmail, secret)


class IdentityCookieIssuer:
    """Derive the `member_id` cookie value and recognise it on later visits."""

    COOKIE_NAME = "member_id"

    def __init__(self, codec: TokenCodec):
        self.codec = codec

    def derive(self, member_id: int) -> str:
        return self.codec.encode(member_id)

    def recognize(self, cookie_value: Optional[str]) -> Optional[Member]:
        return self.codec.resolve(cookie_value)
