"""add search columns: journal authors/abstract/keywords, submission keywords

Revision ID: 8d3f6a1e2b47
Revises: 4c1e2a9b7d30
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d3f6a1e2b47"
down_revision: Union[str, Sequence[str], None] = "4c1e2a9b7d30"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("journals") as batch_op:
        batch_op.add_column(sa.Column("authors", sa.String(length=512), nullable=True))
        batch_op.add_column(sa.Column("abstract", sa.Text(), nullable=True))
        batch_op.add_column(sa.Column("keywords", sa.String(length=512), nullable=True))
    with op.batch_alter_table("submissions") as batch_op:
        batch_op.add_column(sa.Column("keywords", sa.String(length=512), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("submissions") as batch_op:
        batch_op.drop_column("keywords")
    with op.batch_alter_table("journals") as batch_op:
        batch_op.drop_column("keywords")
        batch_op.drop_column("abstract")
        batch_op.drop_column("authors")
