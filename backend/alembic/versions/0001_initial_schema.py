"""Initial schema: users, formats, maps, completions, roles, config, achievements.

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("nk_oak", sa.String(length=255), nullable=True),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_seen_popup", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "formats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("run_submission_status", sa.String(length=16), nullable=False, server_default="closed"),
        sa.Column("map_submission_status", sa.String(length=16), nullable=False, server_default="closed"),
        sa.Column("run_submission_wh", sa.Text(), nullable=True),
        sa.Column("map_submission_wh", sa.Text(), nullable=True),
        sa.Column("emoji", sa.String(length=255), nullable=True),
    )

    op.create_table(
        "formats_rules_subsets",
        sa.Column("format_parent", sa.Integer(), sa.ForeignKey("formats.id"), primary_key=True, nullable=False),
        sa.Column("format_child", sa.Integer(), sa.ForeignKey("formats.id"), primary_key=True, nullable=False),
    )

    op.create_table(
        "maps",
        sa.Column("code", sa.String(length=10), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("map_preview_url", sa.Text(), nullable=True),
    )

    op.create_table(
        "map_list_meta",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=10), sa.ForeignKey("maps.code"), nullable=False),
        sa.Column("placement_curver", sa.Integer(), nullable=True),
        sa.Column("placement_allver", sa.Integer(), nullable=True),
        sa.Column("difficulty", sa.Integer(), nullable=True),
        sa.Column("botb_difficulty", sa.Integer(), nullable=True),
        sa.Column("remake_of", sa.Integer(), nullable=True),
        sa.Column("optimal_heros", sa.Text(), nullable=True),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_on", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_map_list_meta_code_created_on", "map_list_meta", ["code", "created_on"])

    op.create_table(
        "completions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("map_code", sa.String(length=10), sa.ForeignKey("maps.code"), nullable=False),
        sa.Column("submitted_on", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subm_notes", sa.Text(), nullable=True),
        sa.Column("subm_wh_payload", sa.Text(), nullable=True),
    )

    op.create_table(
        "completion_proofs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("run", sa.Integer(), sa.ForeignKey("completions.id"), nullable=False),
        sa.Column("proof_url", sa.Text(), nullable=False),
    )

    op.create_table(
        "leastcostchimps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("leftover", sa.Integer(), nullable=False),
    )

    op.create_table(
        "completions_meta",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("completion_id", sa.Integer(), sa.ForeignKey("completions.id"), nullable=False),
        sa.Column("format_id", sa.Integer(), sa.ForeignKey("formats.id"), nullable=False),
        sa.Column("black_border", sa.Boolean(), nullable=False),
        sa.Column("no_geraldo", sa.Boolean(), nullable=False),
        sa.Column("lcc_id", sa.Integer(), sa.ForeignKey("leastcostchimps.id"), nullable=True),
        sa.Column("accepted_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_on", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_completions_meta_completion_created_on",
        "completions_meta",
        ["completion_id", "created_on"],
    )

    op.create_table(
        "comp_players",
        sa.Column("run", sa.Integer(), sa.ForeignKey("completions_meta.id"), primary_key=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), primary_key=True, nullable=False),
    )

    op.create_table(
        "config",
        sa.Column("name", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
    )

    op.create_table(
        "config_formats",
        sa.Column("config_name", sa.String(length=255), sa.ForeignKey("config.name"), primary_key=True, nullable=False),
        sa.Column("format_id", sa.Integer(), sa.ForeignKey("formats.id"), primary_key=True, nullable=False),
    )

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("assign_on_create", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), primary_key=True, nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), primary_key=True, nullable=False),
    )

    op.create_table(
        "role_grants",
        sa.Column("role_required", sa.Integer(), sa.ForeignKey("roles.id"), primary_key=True, nullable=False),
        sa.Column("role_can_grant", sa.Integer(), sa.ForeignKey("roles.id"), primary_key=True, nullable=False),
    )

    op.create_table(
        "role_format_permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("format_id", sa.Integer(), sa.ForeignKey("formats.id"), nullable=True),
        sa.Column("permission", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("role_id", "format_id", "permission", name="uq_role_format_permissions"),
    )

    op.create_table(
        "achievement_roles",
        sa.Column("lb_format", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("lb_type", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("threshold", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("for_first", sa.Boolean(), nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("tooltip_description", sa.String(length=128), nullable=True),
        sa.Column("clr_border", sa.Integer(), nullable=False),
        sa.Column("clr_inner", sa.Integer(), nullable=False),
    )

    op.create_table(
        "discord_roles",
        sa.Column("ar_lb_format", sa.Integer(), nullable=False),
        sa.Column("ar_lb_type", sa.String(length=16), nullable=False),
        sa.Column("ar_threshold", sa.Integer(), nullable=False),
        sa.Column("guild_id", sa.String(length=32), nullable=False),
        sa.Column("role_id", sa.String(length=32), primary_key=True, nullable=False),
        sa.ForeignKeyConstraint(
            ["ar_lb_format", "ar_lb_type", "ar_threshold"],
            ["achievement_roles.lb_format", "achievement_roles.lb_type", "achievement_roles.threshold"],
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "verifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("map_code", sa.String(length=10), sa.ForeignKey("maps.code"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=True),
    )
    op.create_index("ix_verifications_map_code_version", "verifications", ["map_code", "version"])
    op.create_index(
        "uq_verifications_map_user_version",
        "verifications",
        ["map_code", "user_id", "version"],
        unique=True,
        postgresql_where=sa.text("version IS NOT NULL"),
        sqlite_where=sa.text("version IS NOT NULL"),
    )
    op.create_index(
        "uq_verifications_map_user_first",
        "verifications",
        ["map_code", "user_id"],
        unique=True,
        postgresql_where=sa.text("version IS NULL"),
        sqlite_where=sa.text("version IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_verifications_map_user_first", table_name="verifications")
    op.drop_index("uq_verifications_map_user_version", table_name="verifications")
    op.drop_index("ix_verifications_map_code_version", table_name="verifications")
    op.drop_table("verifications")
    op.drop_table("discord_roles")
    op.drop_table("achievement_roles")
    op.drop_table("role_format_permissions")
    op.drop_table("role_grants")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_table("config_formats")
    op.drop_table("config")
    op.drop_table("comp_players")
    op.drop_index("ix_completions_meta_completion_created_on", table_name="completions_meta")
    op.drop_table("completions_meta")
    op.drop_table("leastcostchimps")
    op.drop_table("completion_proofs")
    op.drop_table("completions")
    op.drop_index("ix_map_list_meta_code_created_on", table_name="map_list_meta")
    op.drop_table("map_list_meta")
    op.drop_table("maps")
    op.drop_table("formats_rules_subsets")
    op.drop_table("formats")
    op.drop_table("users")
