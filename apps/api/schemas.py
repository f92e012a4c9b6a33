"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List, Any
from datetime import datetime, date
from decimal import Decimal

# ============================================
# Auth Schemas
# ============================================

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserRegister(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = None
    location: Optional[str] = None
    password: str = Field(..., min_length=6)

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class TokenData(BaseModel):
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[str] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

class UserResponse(BaseModel):
    user_id: int
    full_name: str
    email: str
    phone: Optional[str]
    location: Optional[str]
    role: str
    is_active: bool
    last_login: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

# ============================================
# User / Profile Schemas
# ============================================

class UserStatusUpdate(BaseModel):
    is_active: Optional[bool] = None
    role: Optional[str] = None

    @validator("role")
    def validate_role(cls, v):
        if v is not None:
            allowed = ["customer", "admin", "station_manager"]
            if v not in allowed:
                raise ValueError(f"Role must be one of: {allowed}")
        return v

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_model: Optional[str] = None
    license_plate: Optional[str] = None
    notifications_enabled: Optional[bool] = None
    preferred_language: Optional[str] = Field(None, max_length=10)

class ProfileResponse(BaseModel):
    profile_id: int
    user_id: int
    avatar_url: Optional[str]
    vehicle_type: Optional[str]
    vehicle_model: Optional[str]
    license_plate: Optional[str]
    total_swaps: int
    total_amount_spent: Decimal
    plastic_recycled_kg: Decimal
    co2_saved_kg: Decimal
    current_points: int
    total_points_earned: int
    total_points_redeemed: int
    notifications_enabled: bool
    preferred_language: Optional[str]

    class Config:
        from_attributes = True

class PointsAdjustment(BaseModel):
    points_adjustment: int
    reason: str = Field(..., min_length=1)

    @validator("points_adjustment")
    def validate_nonzero(cls, v):
        if v == 0:
            raise ValueError("Points adjustment must not be zero")
        return v

class PointsTransactionResponse(BaseModel):
    transaction_id: int
    user_id: int
    points_change: int
    reason: str
    processed_by: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

# ============================================
# Station Schemas
# ============================================

class StationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    station_type: str = "both"
    total_slots: int = Field(..., ge=1)
    accepts_plastic: bool = True
    self_service: bool = False
    operating_hours: Optional[str] = None
    manager_id: Optional[int] = None

    @validator("station_type")
    def validate_station_type(cls, v):
        allowed = ["swap", "charge", "both"]
        if v not in allowed:
            raise ValueError(f"Station type must be one of: {allowed}")
        return v

class StationCreate(StationBase):
    pass

class StationUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    station_type: Optional[str] = None
    total_slots: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    accepts_plastic: Optional[bool] = None
    self_service: Optional[bool] = None
    operating_hours: Optional[str] = None
    manager_id: Optional[int] = None

    @validator("station_type")
    def validate_station_type(cls, v):
        if v is not None:
            allowed = ["swap", "charge", "both"]
            if v not in allowed:
                raise ValueError(f"Station type must be one of: {allowed}")
        return v

class MaintenanceToggle(BaseModel):
    maintenance_mode: bool
    maintenance_notes: Optional[str] = None

class StationResponse(BaseModel):
    station_id: int
    name: str
    address: str
    latitude: float
    longitude: float
    station_type: str
    total_slots: int
    available_batteries: int
    is_active: bool
    accepts_plastic: bool
    self_service: bool
    maintenance_mode: bool
    maintenance_notes: Optional[str]
    operating_hours: Optional[str]
    manager_id: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

# ============================================
# Battery Schemas
# ============================================

BATTERY_STATUSES = ["available", "rented", "charging", "maintenance", "retired"]
HEALTH_STATUSES = ["excellent", "good", "fair", "poor", "critical"]

class BatteryCreate(BaseModel):
    battery_code: str = Field(..., min_length=1, max_length=50)
    serial_number: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    manufacturer: Optional[str] = None
    capacity_kwh: Decimal = Field(..., gt=0)
    charge_percentage: Decimal = Field(default=Decimal("100"), ge=0, le=100)
    health_status: str = "excellent"
    current_station_id: Optional[int] = None
    next_maintenance_due: Optional[date] = None
    notes: Optional[str] = None

    @validator("health_status")
    def validate_health(cls, v):
        if v not in HEALTH_STATUSES:
            raise ValueError(f"Health status must be one of: {HEALTH_STATUSES}")
        return v

class BatteryUpdate(BaseModel):
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    status: Optional[str] = None
    health_status: Optional[str] = None
    current_station_id: Optional[int] = None
    last_maintenance_date: Optional[date] = None
    next_maintenance_due: Optional[date] = None
    notes: Optional[str] = None

    @validator("status")
    def validate_status(cls, v):
        # "rented" is only ever set by the rental transitions
        allowed = [s for s in BATTERY_STATUSES if s != "rented"]
        if v is not None and v not in allowed:
            raise ValueError(f"Status must be one of: {allowed}")
        return v

    @validator("health_status")
    def validate_health(cls, v):
        if v is not None and v not in HEALTH_STATUSES:
            raise ValueError(f"Health status must be one of: {HEALTH_STATUSES}")
        return v

class ChargeUpdate(BaseModel):
    charge_percentage: Decimal = Field(..., ge=0, le=100)

# ============================================
# Rental Schemas
# ============================================

class RentalStart(BaseModel):
    battery_id: int
    pickup_station_id: int

    class Config:
        extra = "ignore"

class RentalReturn(BaseModel):
    return_station_id: int
    final_charge_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

# ============================================
# Waste Schemas
# ============================================

class WasteCreate(BaseModel):
    waste_type: str = "OTHER"
    weight_kg: Decimal = Field(..., gt=0, le=1000)
    station_id: int
    description: Optional[str] = None

    @validator("waste_type")
    def validate_waste_type(cls, v):
        allowed = ["PET", "HDPE", "PVC", "LDPE", "PP", "PS", "OTHER"]
        if v.upper() not in allowed:
            raise ValueError(f"Waste type must be one of: {allowed}")
        return v.upper()

class WasteVerify(BaseModel):
    status: str
    verified_weight_kg: Optional[Decimal] = Field(None, gt=0)
    notes: Optional[str] = None

    @validator("status")
    def validate_status(cls, v):
        allowed = ["verified", "rejected"]
        if v not in allowed:
            raise ValueError(f"Status must be one of: {allowed}")
        return v

# ============================================
# Payment Schemas
# ============================================

PAYMENT_METHODS = ["mpesa", "card", "cash", "points", "bank_transfer"]

class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: str
    rental_id: Optional[int] = None
    user_id: Optional[int] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_reference: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None

    @validator("payment_method")
    def validate_payment_method(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {PAYMENT_METHODS}")
        return v

class PaymentStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None

class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    refund_amount: Optional[Decimal] = Field(None, gt=0)
    refund_method: Optional[str] = None

    @validator("refund_method")
    def validate_refund_method(cls, v):
        if v is not None and v not in PAYMENT_METHODS:
            raise ValueError(f"Refund method must be one of: {PAYMENT_METHODS}")
        return v

class PaymentResponse(BaseModel):
    payment_id: int
    user_id: int
    rental_id: Optional[int]
    amount: Decimal
    currency: str
    payment_method: str
    payment_reference: Optional[str]
    status: str
    description: Optional[str]
    processed_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

# ============================================
# Support Schemas
# ============================================

TICKET_STATUSES = ["open", "in_progress", "resolved", "closed"]
TICKET_PRIORITIES = ["low", "medium", "high", "urgent"]
TICKET_CATEGORIES = ["battery", "payment", "station", "account", "other"]

class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=3, max_length=255)
    message: str = Field(..., min_length=1)
    category: str = "other"
    priority: str = "medium"
    rental_id: Optional[int] = None

    @validator("category")
    def validate_category(cls, v):
        if v not in TICKET_CATEGORIES:
            raise ValueError(f"Category must be one of: {TICKET_CATEGORIES}")
        return v

    @validator("priority")
    def validate_priority(cls, v):
        if v not in TICKET_PRIORITIES:
            raise ValueError(f"Priority must be one of: {TICKET_PRIORITIES}")
        return v

class TicketUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    agent_id: Optional[int] = None

    @validator("status")
    def validate_status(cls, v):
        if v is not None and v not in TICKET_STATUSES:
            raise ValueError(f"Status must be one of: {TICKET_STATUSES}")
        return v

    @validator("priority")
    def validate_priority(cls, v):
        if v is not None and v not in TICKET_PRIORITIES:
            raise ValueError(f"Priority must be one of: {TICKET_PRIORITIES}")
        return v

class TicketMessageCreate(BaseModel):
    message: str = Field(..., min_length=1)

class TicketMessageResponse(BaseModel):
    message_id: int
    ticket_id: int
    sender_id: int
    message: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class TicketResponse(BaseModel):
    ticket_id: int
    user_id: int
    agent_id: Optional[int]
    rental_id: Optional[int]
    subject: str
    message: str
    category: str
    priority: str
    status: str
    resolved_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

# ============================================
# Pagination
# ============================================

class PaginatedResponse(BaseModel):
    items: List[Any]
    total: int
    page: int
    page_size: int
    total_pages: int
