"""Seed formats, roles, role grants and permissions, and config.

Revision ID: 0002_seed_core
Revises: 0001_initial_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
from sqlalchemy.orm import Session

from maplist.db.seed import seed_core


revision = "0002_seed_core"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    session = Session(bind=op.get_bind())
    seed_core(session)
    session.flush()


def downgrade() -> None:
    for table in (
        "config_formats",
        "config",
        "role_format_permissions",
        "role_grants",
        "roles",
        "formats_rules_subsets",
        "formats",
    ):
        op.execute(f"DELETE FROM {table}")
