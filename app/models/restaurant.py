from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from app.core.database import Base


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    slug = Column(String(80), unique=True, index=True, nullable=False)
    domain = Column(String(255), unique=True, index=True, nullable=True)
    description = Column(Text, default="", nullable=True)
    logo_url = Column(String, nullable=True)

    primary_color = Column(String(20), default="#000000", nullable=False)
    secondary_color = Column(String(20), default="#ffffff", nullable=False)

    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    google_maps_link = Column(String, nullable=True)

    # Stored as HH:MM:SS text
    open_time = Column(String(8), default="09:00:00", nullable=False)
    close_time = Column(String(8), default="22:00:00", nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)

    # Restaurants are never hard-deleted, only deactivated.
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
