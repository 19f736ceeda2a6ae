from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from app.core.database import Base

ORDER_STATUSES = ("pending", "accepted", "preparing", "ready", "delivered", "cancelled")
CLOSED_ORDER_STATUSES = ("delivered", "cancelled")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)

    # Null for guest orders
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    total_amount = Column(Numeric(10, 2), default=0, nullable=False)
    tip_amount = Column(Numeric(10, 2), default=0, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending / accepted / preparing / ready / delivered / cancelled

    delivery_address = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)
    customer_name = Column(String(120), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    session_id = Column(String(120), index=True, nullable=True)
    payment_method = Column(String(30), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
