"""Organization model."""

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    description: str = Field(default="", nullable=False)
    plan: str = Field(default="free", nullable=False)  # free | pro | enterprise
    status: str = Field(default="active", nullable=False)  # active | suspended
