"""Add employee holiday region

Revision ID: 0002_employee_holiday_region
Revises: 0001_initial
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_employee_holiday_region"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("employees", sa.Column("holiday_region", sa.String(length=16), nullable=True))


def downgrade() -> None:
    op.drop_column("employees", "holiday_region")
