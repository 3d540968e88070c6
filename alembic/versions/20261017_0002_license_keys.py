"""license keys

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0002"
down_revision: Union[str, Sequence[str], None] = "20261017_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    license_status_enum = sa.Enum("ACTIVE", "USED", "EXPIRED", "REVOKED", name="licensestatus")
    bind = op.get_bind()
    license_status_enum.create(bind, checkfirst=True)

    op.create_table(
        "license_keys",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("license_key", sa.String(length=100), nullable=False),
        sa.Column("status", license_status_enum, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("purchased_by", sa.String(length=255), nullable=True),
        sa.Column("purchased_email", sa.String(length=255), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_license_keys_created_at"), "license_keys", ["created_at"], unique=False)
    op.create_index(op.f("ix_license_keys_id"), "license_keys", ["id"], unique=False)
    op.create_index(op.f("ix_license_keys_license_key"), "license_keys", ["license_key"], unique=True)
    op.create_index(op.f("ix_license_keys_status"), "license_keys", ["status"], unique=False)
    op.create_index(op.f("ix_license_keys_tenant_id"), "license_keys", ["tenant_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_license_keys_tenant_id"), table_name="license_keys")
    op.drop_index(op.f("ix_license_keys_status"), table_name="license_keys")
    op.drop_index(op.f("ix_license_keys_license_key"), table_name="license_keys")
    op.drop_index(op.f("ix_license_keys_id"), table_name="license_keys")
    op.drop_index(op.f("ix_license_keys_created_at"), table_name="license_keys")
    op.drop_table("license_keys")

    bind = op.get_bind()
    sa.Enum(name="licensestatus").drop(bind, checkfirst=True)
