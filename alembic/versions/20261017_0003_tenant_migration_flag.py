"""tenant migration flag

Revision ID: 20261017_0003
Revises: 20261017_0002
Create Date: 2026-10-17 14:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0003"
down_revision: Union[str, Sequence[str], None] = "20261017_0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "tenants",
        sa.Column("is_migrating", sa.Boolean(), server_default=sa.false(), nullable=False),
    )


def downgrade() -> None:
    op.drop_column("tenants", "is_migrating")
