"""Referral Resolution Service.

WHAT:
    Works out which referral channel produced a signature and who gets the
    credit for it.

WHY:
    - Shares, tweets, forwarded confirmations and invitation emails each
      carry a different parameter, and each needs a different lookup.
    - Exactly one channel may classify a signature, so the channels are
      tried in a fixed order and the first one present wins.

HOW:
    1. Walk REFERRAL_CHANNELS in order, stop at the first parameter present
    2. Look the token/id up with that channel's lookup
    3. Return a ReferralResolution: reference type, referrer, the referring
       URL to store, and the experiment option the channel wins (if any)

CONSTRAINTS:
    - A token that matches nothing still classifies the signature; the
      referrer is simply left empty.
    - The emailed-link channel never stores a referring URL.

REFERENCES:
    - app/services/token_service.py (member and sent-email token scopes)
    - app/services/signature_service.py (consumer)
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.models import Member, ReferenceTypeEnum, SentEmail, Share
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


# Lookup strategies
SENT_EMAIL_TOKEN = "sent_email_token"
MEMBER_TOKEN = "member_token"
SHARE_ACTION = "share_action"


@dataclass(frozen=True)
class ReferralParams:
    """Optional referral parameters carried by a submission."""
    email_hash: Optional[str] = None
    fb_like_hash: Optional[str] = None
    fb_share_link_ref: Optional[str] = None
    fb_action_id: Optional[str] = None
    forwarded_notification_hash: Optional[str] = None
    twitter_hash: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReferralParams":
        """Pick the referral parameters out of a larger mapping."""
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})

    def value_of(self, name: str) -> Optional[str]:
        """Return the parameter when it is a non-blank string."""
        value = getattr(self, name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


@dataclass(frozen=True)
class ReferralChannel:
    """One row of the dispatch table."""
    param: str
    reference_type: ReferenceTypeEnum
    lookup: str
    experiment_option: Optional[str] = None
    keeps_referring_url: bool = True


# Order matters: the first parameter present decides the channel.
REFERRAL_CHANNELS = (
    ReferralChannel("email_hash", ReferenceTypeEnum.email, SENT_EMAIL_TOKEN, keeps_referring_url=False),
    ReferralChannel("fb_like_hash", ReferenceTypeEnum.facebook_like, MEMBER_TOKEN, "facebook_like"),
    ReferralChannel("fb_share_link_ref", ReferenceTypeEnum.facebook_popup, MEMBER_TOKEN, "facebook_popup"),
    ReferralChannel("fb_action_id", ReferenceTypeEnum.facebook_share, SHARE_ACTION, "facebook_share"),
    ReferralChannel("forwarded_notification_hash", ReferenceTypeEnum.forwarded_notification, MEMBER_TOKEN),
    ReferralChannel("twitter_hash", ReferenceTypeEnum.twitter, MEMBER_TOKEN),
)


@dataclass
class ReferralResolution:
    """Outcome of referral resolution.

    `reference_type` is None when no referral parameter was present.
    `sent_email` is set only for the emailed-link channel when the token
    matched a stored email.
    """
    reference_type: Optional[ReferenceTypeEnum] = None
    referrer: Optional[Member] = None
    referring_url: Optional[str] = None
    experiment_option: Optional[str] = None
    sent_email: Optional[SentEmail] = None


def select_channel(params: ReferralParams) -> Optional[ReferralChannel]:
    """Return the first channel whose parameter is present, or None."""
    for channel in REFERRAL_CHANNELS:
        if params.value_of(channel.param):
            return channel
    return None


class ReferralResolver:
    """Resolves referral parameters to a classification and a referrer.

    Usage:
        ```python
        resolver = ReferralResolver(db, TokenService(db, secret))
        resolution = resolver.resolve(ReferralParams(twitter_hash=token), "http://x/")
        resolution.reference_type  # ReferenceTypeEnum.twitter
        ```
    """

    def __init__(self, db: Session, tokens: TokenService):
        self.db = db
        self.tokens = tokens

    def resolve(self, params: ReferralParams, referring_url: Optional[str]) -> ReferralResolution:
        channel = select_channel(params)
        if channel is None:
            return ReferralResolution(referring_url=referring_url)

        value = params.value_of(channel.param)
        resolution = ReferralResolution(
            reference_type=channel.reference_type,
            referring_url=referring_url if channel.keeps_referring_url else None,
            experiment_option=channel.experiment_option,
        )

        if channel.lookup == SENT_EMAIL_TOKEN:
            sent_email = self.tokens.sent_emails.resolve(value)
            resolution.sent_email = sent_email
            resolution.referrer = sent_email.member if sent_email else None
        elif channel.lookup == MEMBER_TOKEN:
            resolution.referrer = self.tokens.members.resolve(value)
        elif channel.lookup == SHARE_ACTION:
            share = self._find_share(value)
            resolution.referrer = share.member if share else None

        if resolution.referrer is None:
            logger.info(
                f"[REFERRAL] {channel.param} did not resolve to a referrer",
                extra={"reference_type": channel.reference_type.value},
            )
        else:
            logger.debug(
                f"[REFERRAL] {channel.reference_type.value} referral credited to member {resolution.referrer.id}"
            )
        return resolution

    def _find_share(self, action_id: str) -> Optional[Share]:
        return (
            self.db.query(Share)
            .filter(Share.action_id == action_id)
            .first()
        )
