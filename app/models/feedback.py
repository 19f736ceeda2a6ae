from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func

from app.core.database import Base


class Feedback(Base):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)

    customer_name = Column(String(120), nullable=True)
    customer_email = Column(String(255), nullable=True)

    rating = Column(Integer, nullable=False)
    food_rating = Column(Integer, nullable=True)
    service_rating = Column(Integer, nullable=True)
    atmosphere_rating = Column(Integer, nullable=True)
    feedback_text = Column(Text, nullable=True)
    feedback_type = Column(String(30), default="general", nullable=False)
    order_number = Column(String(50), nullable=True)
    order_items = Column(JSON, nullable=True)

    is_public = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    response_text = Column(Text, nullable=True)
    response_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
