"""
Signature Service Exceptions
============================

Custom exception types for signature intake.

WHY THIS FILE EXISTS
--------------------
Only one failure is allowed to abort a submission: the petition being signed
does not exist. Everything else (blank fields, unresolvable referral tokens,
email delivery failures, duplicate-member races) is resolved inside the
services and reported on the SubmissionResult instead of raised.

RELATED FILES
-------------
- app/services/signature_service.py: Raises these exceptions
- app/routers/signatures.py: Translates them into HTTP responses
"""

from typing import Optional


class SignatureServiceError(Exception):
    """
    Base exception for signature intake errors.

    USAGE:
        try:
            result = service.submit(...)
        except SignatureServiceError as e:
            raise HTTPException(status_code=400, detail=e.message)
    """

    def __init__(self, message: str, petition_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.petition_id = petition_id


class PetitionNotFoundError(SignatureServiceError):
    """
    The petition being signed does not exist.

    Raised before any member or signature is touched, so no side effects
    have happened when callers see it.
    """

    def __init__(self, petition_id: int):
        super().__init__(f"Petition {petition_id} not found", petition_id=petition_id)
