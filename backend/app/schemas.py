"""Pydantic schemas for request/response payloads."""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class SignatureFieldsIn(BaseModel):
    """Signer details. Blank values are accepted and make the submission a no-op."""

    name: Optional[str] = Field(
        default=None,
        description="Signer full name",
        examples=["Bob"],
    )
    email: Optional[str] = Field(
        default=None,
        description="Signer email address",
        examples=["bob@my.com"],
    )


class SignatureSubmission(BaseModel):
    """Payload for signing a petition.

    At most one referral parameter is expected. When several are sent, the
    first in this order wins: email_hash, fb_like_hash, fb_share_link_ref,
    fb_action_id, forwarded_notification_hash, twitter_hash.
    """

    signature: Optional[SignatureFieldsIn] = Field(
        default=None,
        description="Signer name and email",
    )
    referring_url: Optional[str] = Field(
        default=None,
        description="URL the signer was on before reaching the petition",
        examples=["http://petitionator.com/456?other_stuff=etc"],
    )
    email_hash: Optional[str] = Field(default=None, description="Sent-email token from an invitation link")
    fb_like_hash: Optional[str] = Field(default=None, description="Member token from a Facebook like post")
    fb_share_link_ref: Optional[str] = Field(default=None, description="Member token from a Facebook popup share")
    fb_action_id: Optional[str] = Field(default=None, description="Facebook action id of a posted share")
    forwarded_notification_hash: Optional[str] = Field(
        default=None, description="Member token from a forwarded confirmation email"
    )
    twitter_hash: Optional[str] = Field(default=None, description="Member token from a tweeted link")

    model_config = {
        "json_schema_extra": {
            "example": {
                "signature": {"name": "Bob", "email": "bob@my.com"},
                "referring_url": "http://petitionator.com/456?other_stuff=etc",
                "twitter_hash": "3f1c0a9e5b7d2c4e8f6a1b3d5c7e9f0a",
            }
        }
    }

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "SignatureSubmission":
        """Build a submission from an HTML form post.

        Signer fields arrive as `signature[name]` / `signature[email]`,
        referral parameters under their own names.
        """
        data = {key: form.get(key) for key in cls.model_fields if key != "signature"}
        data["signature"] = {
            "name": form.get("signature[name]"),
            "email": form.get("signature[email]"),
        }
        return cls.model_validate(data)


class MemberOut(BaseModel):
    """Member recognised from the identity cookie."""

    name: Optional[str] = Field(description="Member display name", examples=["Bob"])
    email: str = Field(description="Member email address", examples=["bob@my.com"])

    model_config = {"from_attributes": True}


class PetitionOut(BaseModel):
    """Read-only view of a petition for the page the signer is redirected to."""

    id: int = Field(description="Petition identifier", examples=[7])
    title: str = Field(description="Petition title", examples=["Save the park"])
    description: Optional[str] = Field(default=None, description="Petition text")
    signature_count: int = Field(description="Number of signatures", examples=[42])
    notice: Optional[str] = Field(
        default=None,
        description="One-time notice from the previous request (e.g. email delivery failure)",
    )
    member: Optional[MemberOut] = Field(
        default=None,
        description="Member recognised from the member_id cookie, if any",
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(
        description="Error message",
        examples=["Petition not found"],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status",
        examples=["ok"],
    )
