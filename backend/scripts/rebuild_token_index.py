#!/usr/bin/env python3
"""
Rebuild the member / sent-email token index.

WHAT:
    Recomputes the `token` column of every member and sent email with the
    current TOKEN_HASH_SECRET.

WHY:
    Rows inserted outside the API have no token until one is looked up, and
    rotating TOKEN_HASH_SECRET changes every token.

USAGE:
    python scripts/rebuild_token_index.py
    python scripts/rebuild_token_index.py --scope member
    python scripts/rebuild_token_index.py --dry-run

REFERENCES:
    - backend/app/services/token_service.py (TokenCodec.rebuild_index)
"""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import get_sync_session  # noqa: E402
from app.deps import get_settings  # noqa: E402
from app.services.token_service import TokenService  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("rebuild_token_index")


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild lookup token index")
    parser.add_argument("--scope", choices=["member", "sent_email", "all"], default="all")
    parser.add_argument("--dry-run", action="store_true", help="Compute but do not commit")
    args = parser.parse_args()

    settings = get_settings()
    with get_sync_session() as db:
        tokens = TokenService(db, settings.TOKEN_HASH_SECRET)
        codecs = {"member": tokens.members, "sent_email": tokens.sent_emails}
        scopes = list(codecs) if args.scope == "all" else [args.scope]

        total = 0
        for scope in scopes:
            total += codecs[scope].rebuild_index()

        if args.dry_run:
            db.rollback()
            logger.info(f"Dry run: {total} tokens would change")
        else:
            db.commit()
            logger.info(f"Committed {total} token changes")
    return 0


if __name__ == "__main__":
    sys.exit(main())
