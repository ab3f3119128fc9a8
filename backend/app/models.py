"""SQLAlchemy ORM models and enums.

This module defines the schema touched by signature intake: petitions,
members, signatures, and the referral sources a signature can be credited to
(sent emails, Facebook shares). Integer primary keys are used because the
opaque tokens placed in links and cookies are derived from them.
"""

from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, Integer, ForeignKey, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class ReferenceTypeEnum(str, enum.Enum):
    """Referral channel that produced a signature.

    A signature with no matching referral parameter stores NULL instead of a
    member of this enum.
    """
    email = "email"
    facebook_like = "facebook_like"
    facebook_popup = "facebook_popup"
    facebook_share = "facebook_share"
    forwarded_notification = "forwarded_notification"
    twitter = "twitter"


# Core models ----------------------------------------------------

class Petition(Base):
    """Petition being signed.

    Petitions are created and edited elsewhere; this service only looks them
    up by id and attaches signatures to them.
    """
    __tablename__ = "petitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    signatures = relationship("Signature", back_populates="petition")

    def __str__(self):
        return self.title


class Member(Base):
    """Person known to the site, identified by email.

    Created the first time an email signs any petition. `token` is the
    member-scope lookup token used in share links and the `member_id` cookie;
    it is filled in lazily for rows created before it was indexed.
    """
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    token = Column(String(64), unique=True, index=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    signatures = relationship("Signature", back_populates="member", foreign_keys="Signature.member_id")
    referred_signatures = relationship("Signature", back_populates="referrer", foreign_keys="Signature.referrer_id")
    sent_emails = relationship("SentEmail", back_populates="member")
    shares = relationship("Share", back_populates="member")

    def __str__(self):
        return f"{self.name} ({self.email})"


class Signature(Base):
    """One signing event on a petition.

    `reference_type` and `referrer` record how the signer arrived.
    `referring_url` is NULL for the emailed-link channel, which carries no
    browsable URL. `created_member` is True when this signature created the
    member record.
    """
    __tablename__ = "signatures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    petition_id = Column(Integer, ForeignKey("petitions.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    reference_type = Column(
        Enum(ReferenceTypeEnum, values_callable=lambda obj: [e.value for e in obj], name="referencetypeenum"),
        nullable=True,
    )
    referring_url = Column(Text, nullable=True)
    referrer_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    created_member = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    petition = relationship("Petition", back_populates="signatures")
    member = relationship("Member", back_populates="signatures", foreign_keys=[member_id])
    referrer = relationship("Member", back_populates="referred_signatures", foreign_keys=[referrer_id])

    def __str__(self):
        return f"{self.name} <{self.email}>"


class SentEmail(Base):
    """Outbound invitation email whose link may later produce a signature.

    `signature_id` is back-filled once, when a signature arrives through the
    email's link.
    """
    __tablename__ = "sent_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    petition_id = Column(Integer, ForeignKey("petitions.id"), nullable=True)
    signature_id = Column(Integer, ForeignKey("signatures.id"), nullable=True)
    token = Column(String(64), unique=True, index=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    member = relationship("Member", back_populates="sent_emails")
    signature = relationship("Signature")
    experiments = relationship("EmailExperiment", back_populates="sent_email", cascade="all, delete-orphan")


class EmailExperiment(Base):
    """A/B choice made when composing a sent email (e.g. which subject line)."""
    __tablename__ = "email_experiments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sent_email_id = Column(Integer, ForeignKey("sent_emails.id"), nullable=False, index=True)
    key = Column(String, nullable=False)
    choice = Column(String, nullable=False)

    sent_email = relationship("SentEmail", back_populates="experiments")


class Share(Base):
    """Facebook action posted by a member, keyed by Facebook's action id."""
    __tablename__ = "shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    petition_id = Column(Integer, ForeignKey("petitions.id"), nullable=True)
    action_id = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    member = relationship("Member", back_populates="shares")


class ExperimentResult(Base):
    """Win counter for one option of an A/B experiment."""
    __tablename__ = "experiment_results"
    __table_args__ = (UniqueConstraint("group", "option", name="uq_experiment_option"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    group = Column(String, nullable=False)
    option = Column(String, nullable=False)
    wins = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
