from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maplist.db.base import Base


class Completion(Base):
    __tablename__ = "completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    map_code: Mapped[str] = mapped_column(String(length=10), ForeignKey("maps.code"), nullable=False)
    submitted_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    subm_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "<message_id>;<json payload>" of the submission message, until it is updated.
    subm_wh_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    metas: Mapped[list["CompletionMeta"]] = relationship("CompletionMeta", back_populates="completion")
    proofs: Mapped[list["CompletionProof"]] = relationship("CompletionProof", cascade="all, delete-orphan")


class CompletionProof(Base):
    """A video link backing a submitted completion."""

    __tablename__ = "completion_proofs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run: Mapped[int] = mapped_column(Integer, ForeignKey("completions.id"), nullable=False)
    proof_url: Mapped[str] = mapped_column(Text, nullable=False)


class LeastCostChimps(Base):
    __tablename__ = "leastcostchimps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    leftover: Mapped[int] = mapped_column(Integer, nullable=False)


class CompletionMeta(Base):
    """One immutable revision of a completion's metadata."""

    __tablename__ = "completions_meta"
    __table_args__ = (Index("ix_completions_meta_completion_created_on", "completion_id", "created_on"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    completion_id: Mapped[int] = mapped_column(Integer, ForeignKey("completions.id"), nullable=False)
    format_id: Mapped[int] = mapped_column(Integer, ForeignKey("formats.id"), nullable=False)
    black_border: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    no_geraldo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lcc_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("leastcostchimps.id"), nullable=True)
    accepted_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    created_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_on: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    completion: Mapped["Completion"] = relationship("Completion", back_populates="metas")
    lcc: Mapped[Optional["LeastCostChimps"]] = relationship("LeastCostChimps")
    players: Mapped[list["CompPlayer"]] = relationship(
        "CompPlayer",
        back_populates="run_meta",
        cascade="all, delete-orphan",
    )

    @property
    def player_ids(self) -> list[int]:
        return [p.user_id for p in self.players]


class CompPlayer(Base):
    __tablename__ = "comp_players"

    run: Mapped[int] = mapped_column(Integer, ForeignKey("completions_meta.id"), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), primary_key=True)

    run_meta: Mapped["CompletionMeta"] = relationship("CompletionMeta", back_populates="players")
