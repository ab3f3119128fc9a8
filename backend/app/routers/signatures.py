"""Petition signature endpoint.

WHAT:
    Accepts a signature submission, stores it with its referral
    attribution, and redirects the signer back to the petition.

WHY:
    Signing is the conversion every share surface and invitation email is
    measured against, so attribution and the identity cookie are handled
    on the same request.

REFERENCES:
    - app/services/signature_service.py (all business rules)
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from .. import schemas
from ..deps import Settings, get_settings, get_signature_service
from ..exceptions import PetitionNotFoundError
from ..services.referral_resolver import ReferralParams
from ..services.signature_service import RequestMeta, SignatureFields, SignatureService
from ..services.token_service import IdentityCookieIssuer

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/petitions",
    tags=["Signatures"],
    responses={
        404: {"model": schemas.ErrorResponse, "description": "Not Found"},
        500: {"model": schemas.ErrorResponse, "description": "Internal Server Error"},
    }
)


def _set_member_cookie(response: RedirectResponse, request: Request, value: str, settings: Settings) -> None:
    cookie_kwargs = {
        "key": IdentityCookieIssuer.COOKIE_NAME,
        "value": value,
        "httponly": True,
        "samesite": "lax",
        "secure": request.url.scheme == "https",
        "max_age": settings.MEMBER_COOKIE_MAX_AGE,
        "path": "/",
    }
    # Only set domain if explicitly configured
    if settings.COOKIE_DOMAIN:
        cookie_kwargs["domain"] = settings.COOKIE_DOMAIN

    response.set_cookie(**cookie_kwargs)


FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_submission(request: Request) -> schemas.SignatureSubmission:
    """Parse the submission from a JSON body or a browser form post.

    An empty body is a blank submission.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(FORM_CONTENT_TYPES):
            return schemas.SignatureSubmission.from_form(await request.form())

        body = await request.body()
        if not body.strip():
            return schemas.SignatureSubmission()
        try:
            data = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Malformed JSON body")
        return schemas.SignatureSubmission.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))


@router.post(
    "/{petition_id}/signatures",
    status_code=status.HTTP_303_SEE_OTHER,
    response_class=RedirectResponse,
    summary="Sign a petition",
    description="""
    Store a signature and redirect to the petition page.

    Accepts a JSON body or a form post (`signature[name]`, `signature[email]`
    and the referral parameters as plain fields).

    - A blank name or email stores nothing and sets no cookie, but still redirects.
    - The first referral parameter present decides the reference type and referrer.
    - On success the `member_id` cookie identifies the signer on later visits.
    - If the confirmation email fails, the signature is kept and the failure
      message is shown as a one-time notice on the petition page.
    """
)
def create_signature(
    petition_id: int,
    request: Request,
    payload: schemas.SignatureSubmission = Depends(read_submission),
    service: SignatureService = Depends(get_signature_service),
    settings: Settings = Depends(get_settings),
):
    signer = payload.signature or schemas.SignatureFieldsIn()

    try:
        result = service.submit(
            petition_id=petition_id,
            fields=SignatureFields(name=signer.name, email=signer.email),
            params=ReferralParams.from_mapping(payload.model_dump()),
            referring_url=payload.referring_url,
            request_meta=RequestMeta(
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            ),
        )
    except PetitionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Petition not found")

    response = RedirectResponse(
        url=f"/petitions/{result.petition.id}",
        status_code=status.HTTP_303_SEE_OTHER,
    )

    if result.warning:
        request.session["notice"] = result.warning

    if result.cookie_value:
        _set_member_cookie(response, request, result.cookie_value, settings)

    return response
