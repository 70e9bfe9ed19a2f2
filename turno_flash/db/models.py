from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REMINDED = "reminded"
    CLIENT_CONFIRMED = "client_confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class AppointmentSource(str, Enum):
    WEB = "web"
    WHATSAPP = "whatsapp"
    PHONE = "phone"
    WALK_IN = "walk_in"
    ADMIN = "admin"


class ReminderMethod(str, Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    EMAIL = "email"
    CALL = "call"
    PUSH = "push"


class UserRole(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    STAFF = "staff"
    SPECIAL = "special"


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"
    NO_LICENSE = "no_license"


# Customer, Service and StaffMember may be rebuilt from a flattened join row,
# which only carries a handful of columns; everything but `id` has a default.


class Customer(BaseModel):
    id: str
    organization_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: str = ""
    phone_country_code: Optional[str] = None
    whatsapp_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    photo_url: Optional[str] = None
    preferred_staff_id: Optional[str] = None
    is_active: bool = True
    total_appointments: int = 0
    missed_appointments: int = 0
    last_appointment_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None


class Service(BaseModel):
    id: str
    organization_id: Optional[str] = None
    category_id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    duration_minutes: int = 0
    buffer_time_minutes: int = 0
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True
    requires_approval: bool = False
    max_advance_booking_days: Optional[int] = None
    min_advance_booking_hours: Optional[int] = None
    available_for_online_booking: bool = True
    image_url: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StaffMember(BaseModel):
    id: str
    organization_id: Optional[str] = None
    user_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    nickname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    color: Optional[str] = None
    bio: Optional[str] = None
    specialties: Optional[list[str]] = None
    is_active: bool = True
    is_bookable: bool = True
    accepts_online_bookings: bool = True
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Appointment(BaseModel):
    id: str
    organization_id: str
    appointment_number: Optional[str] = None
    customer_id: str
    service_id: str
    staff_id: Optional[str] = None
    appointment_date: date
    start_time: time
    end_time: time
    timezone: Optional[str] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    source: AppointmentSource = AppointmentSource.WEB
    confirmation_sent_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    client_confirmed_at: Optional[datetime] = None
    reminder_method: Optional[ReminderMethod] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    price_charged: Optional[Decimal] = None
    was_paid: bool = False
    payment_method: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentWithDetails(Appointment):
    """Row of the `appointments_with_details` view: an appointment joined with
    its customer, service, staff member and organization."""

    customer_first_name: str = ""
    customer_last_name: str = ""
    customer_phone: str = ""
    customer_email: Optional[str] = None
    service_name: str = ""
    duration_minutes: int = 0
    service_price: Optional[Decimal] = None
    staff_first_name: Optional[str] = None
    staff_last_name: Optional[str] = None
    staff_nickname: Optional[str] = None
    organization_name: str = ""
    organization_timezone: str = "UTC"


class Organization(BaseModel):
    id: str
    name: str
    timezone: str = "UTC"
    slug: Optional[str] = None
    whatsapp_phone: Optional[str] = None
    license_start_date: Optional[date] = None
    license_end_date: Optional[date] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    id: str
    user_id: str
    email: str = ""
    full_name: Optional[str] = None
    role: UserRole = UserRole.STAFF
    organization_id: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LicenseStatusResult(BaseModel):
    organization_id: Optional[str] = None
    organization_name: str = ""
    status: LicenseStatus
    days_remaining: Optional[int] = None
    is_usable: bool
    message: str = ""


class AuthUser(BaseModel):
    # In Supabase this is auth.users.id
    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    app_metadata: dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    user: Optional[AuthUser] = None
