from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maplist.db.base import Base


class Map(Base):
    __tablename__ = "maps"

    code: Mapped[str] = mapped_column(String(length=10), primary_key=True)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    map_preview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    metas: Mapped[list["MapListMeta"]] = relationship("MapListMeta", back_populates="map")


class MapListMeta(Base):
    """One immutable revision of a map's list metadata."""

    __tablename__ = "map_list_meta"
    __table_args__ = (Index("ix_map_list_meta_code_created_on", "code", "created_on"),)

    # Fields carried forward on every new revision.
    VERSIONED_FIELDS = (
        "code",
        "placement_curver",
        "placement_allver",
        "difficulty",
        "botb_difficulty",
        "remake_of",
        "optimal_heros",
        "deleted_on",
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(length=10), ForeignKey("maps.code"), nullable=False)
    placement_curver: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    placement_allver: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    botb_difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    remake_of: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    optimal_heros: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # ";"-separated
    created_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_on: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    map: Mapped["Map"] = relationship("Map", back_populates="metas")
