from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, func

from app.core.database import Base

RESERVATION_STATUSES = ("pending", "confirmed", "started", "completed", "cancelled")


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)

    customer_name = Column(String(120), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(30), nullable=True)

    reservation_date = Column(Date, index=True, nullable=False)
    reservation_time = Column(String(5), nullable=False)  # HH:MM
    party_size = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=True)
    table_number = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), default="pending", nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
