from typing import List, Optional
from datetime import datetime, date
from sqlalchemy import (
    String,
    Boolean,
    Text,
    ForeignKey,
    Enum,
    Index,
    func,
    DateTime,
    Date,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum

from app.db.custom_types import StringUUID, new_uuid


class Base(DeclarativeBase):
    pass


# Enums
class Gender(enum.Enum):
    FEMALE = "female"
    MALE = "male"
    OTHER = "other"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# Models
class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Gender] = mapped_column(Enum(Gender), nullable=False)
    tel: Mapped[Optional[str]] = mapped_column(String(32))

    # Relationships
    profile: Mapped[Optional["UserProfile"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    friends: Mapped[List["Friend"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    devices: Mapped[List["DeviceInfo"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    notifications: Mapped[List["Notification"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_users_email", "email"),)


class UserProfile(Base, AuditMixin):
    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), unique=True
    )
    # IANA timezone name, birthdays are evaluated in this zone
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    email_notifications: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    push_notifications: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    bio: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[Optional[str]] = mapped_column(String(200))

    user: Mapped["User"] = relationship(back_populates="profile")

    __table_args__ = (
        Index(
            "idx_user_profiles_channels", "email_notifications", "push_notifications"
        ),
    )


class Friend(Base, AuditMixin):
    __tablename__ = "friends"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)

    user: Mapped["User"] = relationship(back_populates="friends")

    __table_args__ = (Index("idx_friends_user_id", "user_id"),)


class DeviceInfo(Base, AuditMixin):
    __tablename__ = "device_infos"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Expo push token, e.g. ExponentPushToken[xxxxxxxx]
    device_token: Mapped[str] = mapped_column(String(255), nullable=False)

    user: Mapped["User"] = relationship(back_populates="devices")

    __table_args__ = (
        Index("idx_device_infos_user_created", "user_id", "created_at"),
    )


class Notification(Base, AuditMixin):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    friend_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("friends.id", ondelete="NO ACTION"), nullable=False
    )
    message: Mapped[Optional[str]] = mapped_column(Text)
    # Naive UTC, compared against the clearance window
    date_sent: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship(back_populates="notifications")

    __table_args__ = (
        Index("idx_notif_user_friend_sent", "user_id", "friend_id", "date_sent"),
    )
