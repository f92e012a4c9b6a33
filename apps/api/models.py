"""
SQLAlchemy models for all database tables
"""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base

class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    email = Column(String(191), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), unique=True)
    location = Column(String(255))
    role = Column(String(20), nullable=False, default="customer", index=True)
    is_active = Column(Boolean, default=True, index=True)
    email_verified = Column(Boolean, default=False)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    rentals = relationship("Rental", back_populates="user")
    waste_logs = relationship("WasteLog", back_populates="user", foreign_keys="WasteLog.user_id")
    payments = relationship("Payment", back_populates="user")

class UserProfile(Base):
    __tablename__ = "user_profiles"

    profile_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False)
    avatar_url = Column(String(255))
    vehicle_type = Column(String(50))
    vehicle_model = Column(String(100))
    license_plate = Column(String(20))
    total_swaps = Column(Integer, default=0)
    total_amount_spent = Column(Numeric(10, 2), default=0)
    plastic_recycled_kg = Column(Numeric(8, 3), default=0)
    co2_saved_kg = Column(Numeric(8, 3), default=0)
    current_points = Column(Integer, default=0)
    total_points_earned = Column(Integer, default=0)
    total_points_redeemed = Column(Integer, default=0)
    notifications_enabled = Column(Boolean, default=True)
    preferred_language = Column(String(10), default="en")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="profile")

class Station(Base):
    __tablename__ = "stations"

    station_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    latitude = Column(Numeric(10, 8), nullable=False)
    longitude = Column(Numeric(11, 8), nullable=False)
    station_type = Column(String(10), nullable=False, index=True)
    total_slots = Column(Integer, nullable=False)
    available_batteries = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, index=True)
    accepts_plastic = Column(Boolean, default=True)
    self_service = Column(Boolean, default=False)
    maintenance_mode = Column(Boolean, default=False)
    maintenance_notes = Column(Text)
    operating_hours = Column(String(255))
    manager_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    batteries = relationship("Battery", back_populates="station", foreign_keys="Battery.current_station_id")
    manager = relationship("User", foreign_keys=[manager_id])

class Battery(Base):
    __tablename__ = "batteries"

    battery_id = Column(Integer, primary_key=True, index=True)
    battery_code = Column(String(50), unique=True, nullable=False, index=True)
    serial_number = Column(String(100), unique=True, nullable=False)
    model = Column(String(100), nullable=False)
    manufacturer = Column(String(100))
    capacity_kwh = Column(Numeric(8, 2), nullable=False)
    charge_percentage = Column(Numeric(5, 2), default=100)
    status = Column(String(20), default="available", index=True)
    health_status = Column(String(20), default="excellent", index=True)
    cycle_count = Column(Integer, default=0)
    last_maintenance_date = Column(Date)
    next_maintenance_due = Column(Date)
    current_station_id = Column(Integer, ForeignKey("stations.station_id", ondelete="SET NULL"), index=True)
    # Plain integer: a FK here would make batteries and battery_rentals mutually dependent
    current_rental_id = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    station = relationship("Station", back_populates="batteries", foreign_keys=[current_station_id])
    rentals = relationship("Rental", back_populates="battery")

class Rental(Base):
    __tablename__ = "battery_rentals"

    rental_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    battery_id = Column(Integer, ForeignKey("batteries.battery_id"), nullable=False, index=True)
    pickup_station_id = Column(Integer, ForeignKey("stations.station_id"), nullable=False)
    return_station_id = Column(Integer, ForeignKey("stations.station_id"))
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True))
    initial_charge_percentage = Column(Numeric(5, 2))
    final_charge_percentage = Column(Numeric(5, 2))
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    base_cost = Column(Numeric(10, 2), nullable=False)
    total_cost = Column(Numeric(10, 2))
    status = Column(String(20), default="active", index=True)
    payment_status = Column(String(20), default="pending", index=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="rentals")
    battery = relationship("Battery", back_populates="rentals")
    pickup_station = relationship("Station", foreign_keys=[pickup_station_id])
    return_station = relationship("Station", foreign_keys=[return_station_id])
    payments = relationship("Payment", back_populates="rental")

class WasteLog(Base):
    __tablename__ = "waste_logs"

    waste_log_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    station_id = Column(Integer, ForeignKey("stations.station_id"), nullable=False, index=True)
    waste_type = Column(String(10), nullable=False, default="OTHER")
    weight_kg = Column(Numeric(8, 3), nullable=False)
    verified_weight_kg = Column(Numeric(8, 3))
    points_earned = Column(Integer, nullable=False, default=0)
    co2_saved_kg = Column(Numeric(8, 3))
    description = Column(Text)
    status = Column(String(30), default="pending_verification", index=True)
    verified = Column(Boolean, default=False, index=True)
    verified_by = Column(Integer, ForeignKey("users.user_id"))
    verified_at = Column(DateTime(timezone=True))
    verification_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="waste_logs", foreign_keys=[user_id])
    station = relationship("Station")
    verifier = relationship("User", foreign_keys=[verified_by])

class Payment(Base):
    __tablename__ = "payments"

    payment_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    rental_id = Column(Integer, ForeignKey("battery_rentals.rental_id"), index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="KES")
    payment_method = Column(String(20), nullable=False)
    payment_reference = Column(String(100), unique=True)
    status = Column(String(20), default="pending", index=True)
    description = Column(Text)
    processed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="payments")
    rental = relationship("Rental", back_populates="payments")

class PointsTransaction(Base):
    __tablename__ = "points_transactions"

    transaction_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    points_change = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    processed_by = Column(Integer, ForeignKey("users.user_id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class SupportTicket(Base):
    __tablename__ = "support_tickets"

    ticket_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"))
    rental_id = Column(Integer, ForeignKey("battery_rentals.rental_id"))
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, default="other")
    priority = Column(String(10), nullable=False, default="medium", index=True)
    status = Column(String(20), nullable=False, default="open", index=True)
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    agent = relationship("User", foreign_keys=[agent_id])
    messages = relationship(
        "TicketMessage", back_populates="ticket",
        order_by="TicketMessage.message_id", cascade="all, delete-orphan"
    )

class TicketMessage(Base):
    __tablename__ = "ticket_messages"

    message_id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("support_tickets.ticket_id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    ticket = relationship("SupportTicket", back_populates="messages")
    sender = relationship("User")
