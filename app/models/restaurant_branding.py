from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from app.core.database import Base


class RestaurantBranding(Base):
    __tablename__ = "restaurant_branding"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), unique=True, index=True, nullable=False)

    primary_color = Column(String(20), default="#000000", nullable=False)
    secondary_color = Column(String(20), default="#ffffff", nullable=False)
    accent_color = Column(String(20), default="#ff6b6b", nullable=False)
    font_family = Column(String(80), default="Inter", nullable=False)
    logo_url = Column(String, nullable=True)
    favicon_url = Column(String, nullable=True)
    hero_image_url = Column(String, nullable=True)
    custom_css = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
