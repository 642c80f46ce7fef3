"""Test helpers shared by unit and integration suites."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

_ENV_PY = """\
from alembic import context

connection = context.config.attributes["connection"]
context.configure(connection=connection)
with context.begin_transaction():
    context.run_migrations()
"""

_REVISION = """\
from alembic import op
import sqlalchemy as sa

revision = {rev!r}
down_revision = {down!r}
branch_labels = None
depends_on = None


def upgrade():
    op.create_table({table!r}, sa.Column("id", sa.Integer, primary_key=True))


def downgrade():
    op.drop_table({table!r})
"""


def write_alembic_project(root: Path) -> Path:
    """Write a two-revision Alembic project under *root* and return its ini path.

    Revision ``0001`` creates ``widgets``; ``0002`` creates ``gadgets``.
    Tables are unqualified, so they land in the schema active on the
    connection handed to ``env.py``.
    """
    script_dir = root / "migrations"
    versions = script_dir / "versions"
    versions.mkdir(parents=True)
    (script_dir / "env.py").write_text(_ENV_PY)
    (versions / "0001_widgets.py").write_text(
        _REVISION.format(rev="0001", down=None, table="widgets")
    )
    (versions / "0002_gadgets.py").write_text(
        _REVISION.format(rev="0002", down="0001", table="gadgets")
    )
    ini = root / "alembic.ini"
    ini.write_text(f"[alembic]\nscript_location = {script_dir}\npath_separator = os\n")
    return ini
