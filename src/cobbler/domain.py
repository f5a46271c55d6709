from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class Stage(str, Enum):
    ENQUIRY = "enquiry"
    PICKUP = "pickup"
    SERVICE = "service"
    DELIVERY = "delivery"
    COMPLETED = "completed"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.ENQUIRY,
    Stage.PICKUP,
    Stage.SERVICE,
    Stage.DELIVERY,
    Stage.COMPLETED,
)


def next_stage(stage: Stage) -> Optional[Stage]:
    i = STAGE_ORDER.index(stage)
    return STAGE_ORDER[i + 1] if i + 1 < len(STAGE_ORDER) else None


class EnquiryStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    CLOSED = "closed"


class InquiryType(str, Enum):
    INSTAGRAM = "Instagram"
    FACEBOOK = "Facebook"
    WHATSAPP = "WhatsApp"


class ProductType(str, Enum):
    BAG = "Bag"
    SHOE = "Shoe"
    WALLET = "Wallet"
    BELT = "Belt"
    FURNITURE = "All type furniture"
    JACKET = "Jacket"
    OTHER = "Other"


class PickupStatus(str, Enum):
    SCHEDULED = "scheduled"
    ASSIGNED = "assigned"
    COLLECTED = "collected"
    RECEIVED = "received"


class ServiceType(str, Enum):
    REPAIRING = "Repairing"
    CLEANING = "Cleaning"
    DYEING = "Dyeing"


class ServiceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class DeliveryStatus(str, Enum):
    READY = "ready"
    SCHEDULED = "scheduled"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"


class DeliveryMethod(str, Enum):
    CUSTOMER_PICKUP = "customer-pickup"
    HOME_DELIVERY = "home-delivery"


class ExpenseCategory(str, Enum):
    MATERIALS = "Materials"
    TOOLS = "Tools"
    RENT = "Rent"
    UTILITIES = "Utilities"
    TRANSPORTATION = "Transportation"
    MARKETING = "Marketing"
    STAFF_SALARIES = "Staff Salaries"
    OFFICE_SUPPLIES = "Office Supplies"
    MAINTENANCE = "Maintenance"
    PROFESSIONAL_SERVICES = "Professional Services"
    INSURANCE = "Insurance"
    MISCELLANEOUS = "Miscellaneous"


class StaffRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    PICKUP = "pickup"
    RECEPTIONIST = "receptionist"


@dataclass(frozen=True)
class ProductItem:
    product: ProductType
    quantity: int


@dataclass(frozen=True)
class ItemPhotos:
    """Photos taken of one physical item when it is received at the shop."""

    product: ProductType
    item_index: int
    photos: tuple[str, ...]
    notes: Optional[str] = None


@dataclass(frozen=True)
class PickupDetails:
    status: PickupStatus
    scheduled_time: Optional[datetime] = None
    assigned_to: Optional[str] = None
    collection_photo: Optional[str] = None
    collection_notes: Optional[str] = None
    collected_at: Optional[datetime] = None
    received_items: tuple[ItemPhotos, ...] = ()
    received_notes: Optional[str] = None
    received_at: Optional[datetime] = None


@dataclass(frozen=True)
class ServiceTask:
    type: ServiceType
    status: ServiceStatus = ServiceStatus.PENDING
    product: Optional[ProductType] = None
    item_index: Optional[int] = None
    before_photo: Optional[str] = None
    after_photo: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BillingItem:
    service_type: ServiceType
    original_amount: Decimal
    discount_value: Decimal = Decimal("0")  # percent
    discount_amount: Decimal = Decimal("0")
    final_amount: Decimal = Decimal("0")
    gst_rate: Decimal = Decimal("0")  # percent
    gst_amount: Decimal = Decimal("0")
    description: Optional[str] = None


@dataclass(frozen=True)
class BillingDetails:
    """Invoice for an order. `final_amount` is the sum of the undiscounted
    line amounts; `total_amount` is what the customer pays."""

    items: tuple[BillingItem, ...]
    gst_included: bool
    final_amount: Decimal
    gst_amount: Decimal
    subtotal: Decimal
    total_amount: Decimal
    invoice_number: str
    invoice_date: date
    customer_name: str
    customer_phone: str
    customer_address: str
    notes: Optional[str] = None
    generated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ServiceDetails:
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    received_notes: Optional[str] = None
    work_notes: Optional[str] = None
    tasks: tuple[ServiceTask, ...] = ()
    final_photo: Optional[str] = None
    completed_at: Optional[datetime] = None
    billing_details: Optional[BillingDetails] = None


@dataclass(frozen=True)
class DeliveryDetails:
    status: DeliveryStatus
    delivery_method: Optional[DeliveryMethod] = None
    scheduled_time: Optional[datetime] = None
    assigned_to: Optional[str] = None
    delivery_address: Optional[str] = None
    proof_photo: Optional[str] = None
    customer_signature: Optional[str] = None
    delivery_notes: Optional[str] = None
    delivered_at: Optional[datetime] = None


@dataclass(frozen=True)
class Enquiry:
    id: Optional[int]
    customer_name: str
    phone: str
    address: str
    message: str
    inquiry_type: InquiryType
    products: tuple[ProductItem, ...]
    date: datetime
    status: EnquiryStatus = EnquiryStatus.NEW
    current_stage: Stage = Stage.ENQUIRY
    contacted: bool = False
    contacted_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    quoted_amount: Optional[Decimal] = None
    final_amount: Optional[Decimal] = None
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None
    pickup_details: Optional[PickupDetails] = None
    service_details: Optional[ServiceDetails] = None
    delivery_details: Optional[DeliveryDetails] = None

    @property
    def revenue(self) -> Decimal:
        return self.final_amount if self.final_amount is not None else (self.quoted_amount or Decimal("0"))

    @property
    def delivered_at(self) -> Optional[datetime]:
        return self.delivery_details.delivered_at if self.delivery_details else None


@dataclass(frozen=True)
class Expense:
    id: Optional[int]
    title: str
    amount: Decimal
    category: ExpenseCategory
    date: date
    description: str = ""
    notes: Optional[str] = None
    bill_url: Optional[str] = None
    employee_id: Optional[int] = None
    employee_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Employee:
    id: Optional[int]
    name: str
    role: str
    monthly_salary: Decimal
    date_added: date
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class BusinessInfo:
    business_name: str
    owner_name: str
    phone: str
    email: str
    address: str
    gst_number: str = ""
    timezone: str = "Asia/Kolkata"
    currency: str = "INR"
    logo: Optional[str] = None
    website: Optional[str] = None
    tagline: Optional[str] = None
    id: Optional[int] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class StaffMember:
    id: Optional[int]
    name: str
    role: StaffRole
    email: str
    phone: str
    status: str = "active"
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SecuritySettings:
    two_factor_enabled: bool = False
    session_timeout: int = 30
    max_login_attempts: int = 5
    account_lockout_duration: int = 15
    password_last_changed: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class NotificationSettings:
    email_alerts: bool = True
    sms_alerts: bool = False
    low_stock_alerts: bool = True
    order_updates: bool = True
    customer_approvals: bool = True
    id: Optional[int] = None
