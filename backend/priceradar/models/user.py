"""User model: owner of monitors and offers."""

from typing import TYPE_CHECKING, List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from priceradar.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from priceradar.models.monitor import Monitor
    from priceradar.models.offer import Offer


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Application user owning monitors."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False, index=True,
        comment="User email address (unique)"
    )
    plan: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free",
        comment="Plan tier: 'free' or 'pro'"
    )

    # Relationships
    monitors: Mapped[List["Monitor"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    offers: Mapped[List["Offer"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', plan='{self.plan}')>"
