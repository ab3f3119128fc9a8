"""Signature intake service.

WHAT:
    Turns a petition signature submission into a stored signature plus its
    side effects: member find-or-create, referral attribution, sent-email
    back-fill, experiment wins, confirmation email and identity cookie.

WHY:
    One place owns the order of operations and decides which failures are
    fatal. Only a missing petition aborts a submission; everything after
    the member + signature commit is best-effort and reported on the result.

HOW:
    1. Load the petition (PetitionNotFoundError if missing)
    2. Blank name or email: skip everything, caller still redirects
    3. Find or create the member
    4. Resolve the referral channel
    5. Store the signature and commit it with the member
    6. Back-fill the sent email (emailed-link channel, first signature only)
    7. Record experiment wins (failures logged, never raised)
    8. Send the confirmation email, keep its failure as a warning
    9. Derive the identity cookie value

REFERENCES:
    - app/services/referral_resolver.py
    - app/services/member_registry.py
    - app/services/experiment_tracker.py
    - app/services/notification_service.py
    - app/routers/signatures.py (HTTP surface)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import PetitionNotFoundError
from app.models import Petition, SentEmail, Signature
from app.services.experiment_tracker import FACEBOOK_SHARING_OPTIONS, ExperimentTracker
from app.services.member_registry import MemberRegistry
from app.services.notification_service import NotificationDispatcher
from app.services.referral_resolver import ReferralParams, ReferralResolution, ReferralResolver
from app.services.token_service import IdentityCookieIssuer
from app.telemetry.sentry import capture_exception, capture_message

logger = logging.getLogger(__name__)


@dataclass
class SignatureFields:
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.name.strip() and self.email and self.email.strip())


@dataclass
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class SubmissionResult:
    """Outcome of a submission that did not hit a missing petition.

    `signature` and `cookie_value` are None when the submission was skipped
    for a blank name or email. `warning` carries the mail transport's error
    text when the confirmation email could not be sent.
    """
    petition: Petition
    signature: Optional[Signature] = None
    created_member: bool = False
    cookie_value: Optional[str] = None
    warning: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.signature is None


class SignatureService:
    """Orchestrates a signature submission.

    Usage:
        ```python
        service = SignatureService(db, registry, resolver, tracker, dispatcher, cookies)
        result = service.submit(
            petition_id=7,
            fields=SignatureFields(name="Bob", email="bob@my.com"),
            params=ReferralParams(twitter_hash="..."),
            referring_url="http://x/?a=1",
            request_meta=RequestMeta(ip_address="0.0.0.0", user_agent="curl"),
        )
        ```
    """

    def __init__(
        self,
        db: Session,
        registry: MemberRegistry,
        resolver: ReferralResolver,
        tracker: ExperimentTracker,
        dispatcher: NotificationDispatcher,
        cookies: IdentityCookieIssuer,
    ):
        self.db = db
        self.registry = registry
        self.resolver = resolver
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.cookies = cookies

    def submit(
        self,
        petition_id: int,
        fields: SignatureFields,
        params: ReferralParams,
        referring_url: Optional[str],
        request_meta: RequestMeta,
    ) -> SubmissionResult:
        petition = self.db.get(Petition, petition_id)
        if petition is None:
            raise PetitionNotFoundError(petition_id)

        if not fields.is_complete:
            logger.info(f"[SIGNATURES] Incomplete submission for petition {petition_id}, nothing stored")
            return SubmissionResult(petition=petition)

        name = fields.name.strip()
        email = fields.email.strip()

        try:
            member, created_member = self.registry.find_or_create(email, name)
            resolution = self.resolver.resolve(params, referring_url)
            signature = Signature(
                petition=petition,
                member=member,
                name=name,
                email=email,
                ip_address=request_meta.ip_address,
                user_agent=request_meta.user_agent,
                reference_type=resolution.reference_type,
                referring_url=resolution.referring_url,
                referrer=resolution.referrer,
                created_member=created_member,
            )
            self.db.add(signature)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"[SIGNATURES] Failed to store signature for petition {petition_id}")
            raise

        logger.info(
            f"[SIGNATURES] Signature {signature.id} stored for petition {petition_id}",
            extra={
                "reference_type": resolution.reference_type.value if resolution.reference_type else None,
                "created_member": created_member,
            },
        )

        # The first signature through an emailed link owns it
        if resolution.sent_email is not None and resolution.sent_email.signature_id is None:
            self._backfill_sent_email(resolution.sent_email, signature)

        try:
            self._record_wins(resolution)
        except Exception as e:
            self.db.rollback()
            logger.exception(f"[SIGNATURES] Failed to record experiment wins for signature {signature.id}: {e}")
            capture_exception(e, extra={"signature_id": signature.id, "petition_id": petition_id})

        notification = self.dispatcher.send_confirmation(signature)
        warning = None if notification.success else notification.error

        return SubmissionResult(
            petition=petition,
            signature=signature,
            created_member=created_member,
            cookie_value=self.cookies.derive(member.id),
            warning=warning,
        )

    def _backfill_sent_email(self, sent_email: SentEmail, signature: Signature) -> None:
        try:
            sent_email.signature_id = signature.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[SIGNATURES] Could not link sent email {sent_email.id} to signature {signature.id}: {e}")
            capture_message(
                "Sent email back-fill failed",
                level="warning",
                extra={"sent_email_id": sent_email.id, "signature_id": signature.id},
            )

    def _record_wins(self, resolution: ReferralResolution) -> None:
        if resolution.experiment_option:
            self.tracker.win(FACEBOOK_SHARING_OPTIONS, resolution.experiment_option)
        if resolution.sent_email is not None:
            self.tracker.win_email_experiments(resolution.sent_email)
