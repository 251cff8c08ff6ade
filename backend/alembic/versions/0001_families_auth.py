"""create families, users and refresh tokens

Revision ID: 0001_families_auth
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_families_auth"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "families",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        "users",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("FamilyId", sa.String(length=36), nullable=False),
        sa.Column("Username", sa.String(length=120), nullable=False),
        sa.Column("PasswordHash", sa.String(length=255), nullable=False),
        sa.Column("FirstName", sa.String(length=120), nullable=True),
        sa.Column("LastName", sa.String(length=120), nullable=True),
        sa.Column("Email", sa.String(length=254), nullable=True),
        sa.Column("Role", sa.String(length=20), nullable=False, server_default="Editor"),
        sa.Column("FailedLoginCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("LockedUntil", sa.DateTime(timezone=True), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.ForeignKeyConstraint(["FamilyId"], ["families.Id"], name="fk_users_family"),
    )
    op.create_index("ix_users_Username", "users", ["Username"], unique=True)
    op.create_index("ix_users_FamilyId", "users", ["FamilyId"])

    op.create_table(
        "refresh_tokens",
        sa.Column("Id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("UserId", sa.String(length=36), nullable=False),
        sa.Column("TokenHash", sa.String(length=255), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("ExpiresAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("RevokedAt", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["UserId"], ["users.Id"], name="fk_refresh_tokens_user"),
    )
    op.create_index("ix_refresh_tokens_UserId", "refresh_tokens", ["UserId"])


def downgrade() -> None:
    op.drop_index("ix_refresh_tokens_UserId", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_index("ix_users_FamilyId", table_name="users")
    op.drop_index("ix_users_Username", table_name="users")
    op.drop_table("users")
    op.drop_table("families")
