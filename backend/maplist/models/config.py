from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maplist.db.base import Base


CONFIG_TYPES = ("int", "float", "string")


class Config(Base):
    __tablename__ = "config"

    name: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(length=16), nullable=False)  # int | float | string
    difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    config_formats: Mapped[list["ConfigFormat"]] = relationship(
        "ConfigFormat",
        back_populates="config",
        cascade="all, delete-orphan",
    )

    @property
    def format_ids(self) -> list[int]:
        return sorted(cf.format_id for cf in self.config_formats)


class ConfigFormat(Base):
    __tablename__ = "config_formats"

    config_name: Mapped[str] = mapped_column(String(length=255), ForeignKey("config.name"), primary_key=True)
    format_id: Mapped[int] = mapped_column(Integer, ForeignKey("formats.id"), primary_key=True)

    config: Mapped["Config"] = relationship("Config", back_populates="config_formats")
