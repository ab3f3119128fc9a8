"""Read-only petition endpoint the signature flow redirects to."""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_token_service
from ..models import Petition, Signature
from ..services.token_service import IdentityCookieIssuer, TokenService


router = APIRouter(
    prefix="/petitions",
    tags=["Petitions"],
    responses={
        404: {"model": schemas.ErrorResponse, "description": "Not Found"},
    }
)


@router.get(
    "/{petition_id}",
    response_model=schemas.PetitionOut,
    summary="Get petition",
    description="""
    Petition summary with the signature count.

    Also returns (once) any notice left by the previous request, and the
    member recognised from the `member_id` cookie so the signing form can
    be pre-filled.
    """
)
def get_petition(
    petition_id: int,
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    member_id: Optional[str] = Cookie(default=None),
):
    petition = db.get(Petition, petition_id)
    if not petition:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Petition not found")

    signature_count = (
        db.query(func.count(Signature.id))
        .filter(Signature.petition_id == petition_id)
        .scalar()
    )

    member = IdentityCookieIssuer(tokens.members).recognize(member_id)
    if db.dirty:
        # recognize() indexed member tokens while searching
        db.commit()

    return schemas.PetitionOut(
        id=petition.id,
        title=petition.title,
        description=petition.description,
        signature_count=signature_count or 0,
        notice=request.session.pop("notice", None),
        member=schemas.MemberOut.model_validate(member) if member else None,
    )
