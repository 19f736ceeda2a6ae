from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func

from app.core.database import Base


class RestaurantSettings(Base):
    __tablename__ = "restaurant_settings"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), unique=True, index=True, nullable=False)

    wifi_name = Column(String(50), nullable=True)
    wifi_password = Column(String(50), nullable=True)
    instagram = Column(String, nullable=True)
    facebook = Column(String, nullable=True)
    trip_advisor = Column(String, nullable=True)
    whatsapp = Column(String, nullable=True)
    telegram = Column(String, nullable=True)
    custom_social_media = Column(JSON, default=list, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
