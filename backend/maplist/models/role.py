from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maplist.db.base import Base


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    assign_on_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    users: Mapped[list["User"]] = relationship("User", secondary="user_roles", back_populates="roles")
    format_permissions: Mapped[list["RoleFormatPermission"]] = relationship(
        "RoleFormatPermission",
        back_populates="role",
        cascade="all, delete-orphan",
    )
    can_grant: Mapped[list["Role"]] = relationship(
        "Role",
        secondary="role_grants",
        primaryjoin="Role.id == RoleGrant.role_required",
        secondaryjoin="Role.id == RoleGrant.role_can_grant",
        viewonly=True,
    )


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), primary_key=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), primary_key=True)


class RoleGrant(Base):
    """Holding ``role_required`` lets a user grant or revoke ``role_can_grant``."""

    __tablename__ = "role_grants"

    role_required: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), primary_key=True)
    role_can_grant: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), primary_key=True)


class RoleFormatPermission(Base):
    __tablename__ = "role_format_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "format_id", "permission", name="uq_role_format_permissions"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), nullable=False)
    # Null means the permission applies to every format.
    format_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("formats.id"), nullable=True)
    permission: Mapped[str] = mapped_column(String(length=64), nullable=False)

    role: Mapped["Role"] = relationship("Role", back_populates="format_permissions")
