from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from maplist.db.base import Base


MAPLIST = 1
MAPLIST_ALL_VERSIONS = 2
NOSTALGIA_PACK = 11
EXPERT_LIST = 51
BEST_OF_THE_BEST = 52

LEADERBOARD_TYPES = ("points", "lccs", "no_geraldo", "black_border")

RUN_SUBMISSION_STATUSES = ("closed", "open", "lcc_only")
MAP_SUBMISSION_STATUSES = ("closed", "open", "open_chimps")


class Format(Base):
    __tablename__ = "formats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(length=64), nullable=False)
    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    run_submission_status: Mapped[str] = mapped_column(
        String(length=16), nullable=False, default="closed", server_default="closed"
    )
    map_submission_status: Mapped[str] = mapped_column(
        String(length=16), nullable=False, default="closed", server_default="closed"
    )
    run_submission_wh: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    map_submission_wh: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emoji: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)


class FormatRuleSubset(Base):
    """Completions filed under ``format_child`` also count for ``format_parent``."""

    __tablename__ = "formats_rules_subsets"

    format_parent: Mapped[int] = mapped_column(Integer, ForeignKey("formats.id"), primary_key=True)
    format_child: Mapped[int] = mapped_column(Integer, ForeignKey("formats.id"), primary_key=True)
