"""create tables

Revision ID: 3c9a41d07b52
Revises: 
Create Date: 2026-10-19 10:12:31.408113

"""
from typing import Sequence, Union

from alembic import op
from viking.database import Base
from viking.models import device, user  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '3c9a41d07b52'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the user, role, link, device and diagnostic point tables."""
    bind = op.get_bind()
    Base.metadata.create_all(bind)


def downgrade() -> None:
    """Drop every table created by this revision."""
    bind = op.get_bind()
    Base.metadata.drop_all(bind)
