"""Create petition signature and referral tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00.000000

WHAT:
    Creates the tables used by signature intake:
    - petitions, members, signatures
    - sent_emails + email_experiments (invitation emails and their A/B choices)
    - shares (Facebook posted actions)
    - experiment_results (win counters)

WHY:
    - members.email is unique so concurrent first signatures cannot create
      two members for one address.
    - members.token / sent_emails.token index the one-way link tokens.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


REFERENCE_TYPES = (
    "email",
    "facebook_like",
    "facebook_popup",
    "facebook_share",
    "forwarded_notification",
    "twitter",
)


def upgrade() -> None:
    reference_type_enum = postgresql.ENUM(*REFERENCE_TYPES, name="referencetypeenum", create_type=False)
    reference_type_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "petitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_members_email", "members", ["email"], unique=True)
    op.create_index("ix_members_token", "members", ["token"], unique=True)

    op.create_table(
        "signatures",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("petition_id", sa.Integer(), sa.ForeignKey("petitions.id"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("reference_type", reference_type_enum, nullable=True),
        sa.Column("referring_url", sa.Text(), nullable=True),
        sa.Column("referrer_id", sa.Integer(), sa.ForeignKey("members.id"), nullable=True),
        sa.Column("created_member", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_signatures_petition_id", "signatures", ["petition_id"])
    op.create_index("ix_signatures_member_id", "signatures", ["member_id"])
    op.create_index("ix_signatures_email", "signatures", ["email"])

    op.create_table(
        "sent_emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id"), nullable=True),
        sa.Column("petition_id", sa.Integer(), sa.ForeignKey("petitions.id"), nullable=True),
        sa.Column("signature_id", sa.Integer(), sa.ForeignKey("signatures.id"), nullable=True),
        sa.Column("token", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_sent_emails_token", "sent_emails", ["token"], unique=True)

    op.create_table(
        "email_experiments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sent_email_id", sa.Integer(), sa.ForeignKey("sent_emails.id"), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("choice", sa.String(), nullable=False),
    )
    op.create_index("ix_email_experiments_sent_email_id", "email_experiments", ["sent_email_id"])

    op.create_table(
        "shares",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("petition_id", sa.Integer(), sa.ForeignKey("petitions.id"), nullable=True),
        sa.Column("action_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_shares_action_id", "shares", ["action_id"], unique=True)

    op.create_table(
        "experiment_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("group", sa.String(), nullable=False),
        sa.Column("option", sa.String(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("group", "option", name="uq_experiment_option"),
    )


def downgrade() -> None:
    op.drop_table("experiment_results")
    op.drop_index("ix_shares_action_id", table_name="shares")
    op.drop_table("shares")
    op.drop_index("ix_email_experiments_sent_email_id", table_name="email_experiments")
    op.drop_table("email_experiments")
    op.drop_index("ix_sent_emails_token", table_name="sent_emails")
    op.drop_table("sent_emails")
    op.drop_index("ix_signatures_email", table_name="signatures")
    op.drop_index("ix_signatures_member_id", table_name="signatures")
    op.drop_index("ix_signatures_petition_id", table_name="signatures")
    op.drop_table("signatures")
    op.drop_index("ix_members_token", table_name="members")
    op.drop_index("ix_members_email", table_name="members")
    op.drop_table("members")
    op.drop_table("petitions")
    op.execute("DROP TYPE IF EXISTS referencetypeenum;")
