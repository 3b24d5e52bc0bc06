from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from maplist.db.base import Base


class Verification(Base):
    """A verifier of a map. ``version`` null marks the map's first-ever verifiers."""

    __tablename__ = "verifications"
    __table_args__ = (
        Index("ix_verifications_map_code_version", "map_code", "version"),
        # NULLs never collide in a plain unique index, so each half gets its own
        Index(
            "uq_verifications_map_user_version",
            "map_code",
            "user_id",
            "version",
            unique=True,
            postgresql_where=text("version IS NOT NULL"),
            sqlite_where=text("version IS NOT NULL"),
        ),
        Index(
            "uq_verifications_map_user_first",
            "map_code",
            "user_id",
            unique=True,
            postgresql_where=text("version IS NULL"),
            sqlite_where=text("version IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    map_code: Mapped[str] = mapped_column(String(length=10), ForeignKey("maps.code"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
