"""Member registry: find-or-create members by email.

Concurrent first signatures from the same address can both miss the lookup.
The unique index on `members.email` lets only one insert win; the loser
rolls back its savepoint and re-reads the winner's row.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Member
from app.services.token_service import TokenCodec

logger = logging.getLogger(__name__)


class MemberRegistry:

    def __init__(self, db: Session, codec: TokenCodec):
        self.db = db
        self.codec = codec

    def find(self, email: str) -> Optional[Member]:
        return (
            self.db.query(Member)
            .filter(Member.email == email)
            .first()
        )

    def find_or_create(self, email: str, name: str) -> Tuple[Member, bool]:
        """Return (member, created).

        Does not commit: the caller commits the member together with the
        signature that needed it.
        """
        member = self.find(email)
        if member:
            return member, False

        savepoint = self.db.begin_nested()
        try:
            member = Member(name=name, email=email)
            self.db.add(member)
            self.db.flush()
            self.codec.assign(member)
            self.db.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(f"[MEMBERS] Lost create race for {email}, re-reading existing member")
            member = self.find(email)
            if member is None:
                # Violation was not on the email index
                raise
            return member, False

        logger.info(f"[MEMBERS] Created member {member.id} for {email}")
        return member, True
