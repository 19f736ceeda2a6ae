from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func

from app.core.database import Base


class RestaurantContent(Base):
    __tablename__ = "restaurant_content"
    __table_args__ = (UniqueConstraint("restaurant_id", "page_type", name="uq_restaurant_content_page"),)

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    page_type = Column(String(40), nullable=False)  # about / contact / ...
    title = Column(String(200), nullable=False)
    content = Column(Text, default="", nullable=False)
    meta_description = Column(String(300), nullable=True)
    is_published = Column(Boolean, default=True, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
