from typing import Optional

from sqlalchemy import Boolean, ForeignKeyConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maplist.db.base import Base


class AchievementRole(Base):
    __tablename__ = "achievement_roles"

    lb_format: Mapped[int] = mapped_column(Integer, primary_key=True)
    lb_type: Mapped[str] = mapped_column(String(length=16), primary_key=True)
    threshold: Mapped[int] = mapped_column(Integer, primary_key=True)
    for_first: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    name: Mapped[str] = mapped_column(String(length=32), nullable=False)
    tooltip_description: Mapped[Optional[str]] = mapped_column(String(length=128), nullable=True)
    clr_border: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clr_inner: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    linked_roles: Mapped[list["DiscordRole"]] = relationship(
        "DiscordRole",
        back_populates="achievement_role",
        cascade="all, delete-orphan",
    )

    @property
    def pair(self) -> tuple[int, str]:
        return self.lb_format, self.lb_type


class DiscordRole(Base):
    __tablename__ = "discord_roles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["ar_lb_format", "ar_lb_type", "ar_threshold"],
            ["achievement_roles.lb_format", "achievement_roles.lb_type", "achievement_roles.threshold"],
            ondelete="CASCADE",
        ),
    )

    ar_lb_format: Mapped[int] = mapped_column(Integer, nullable=False)
    ar_lb_type: Mapped[str] = mapped_column(String(length=16), nullable=False)
    ar_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    guild_id: Mapped[str] = mapped_column(String(length=32), nullable=False)
    # An external role backs at most one achievement tier.
    role_id: Mapped[str] = mapped_column(String(length=32), primary_key=True)

    achievement_role: Mapped["AchievementRole"] = relationship("AchievementRole", back_populates="linked_roles")
