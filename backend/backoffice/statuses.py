# Overview: Closed status vocabularies and their display labels.

"""
Status enums for every lifecycle in the back office.

Values are stored in the database as the plain string (``member.value``).
Every enum registered in ``LABELS`` must map every member to a label;
``label_for`` raises instead of falling back to the raw value so a missing
label is caught by the test suite rather than shown to users.
"""

from __future__ import annotations

from enum import Enum

from .validation import ValidationError


class OrderStatus(str, Enum):
    NEW = "NEW"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    IN_PROCESS = "IN_PROCESS"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class PurchaseOrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class StockConfirmationStatus(str, Enum):
    WAITING_CONFIRMATION = "WAITING_CONFIRMATION"
    STOCK_AVAILABLE = "STOCK_AVAILABLE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERPAID = "OVERPAID"


class PreparationStatus(str, Enum):
    WAITING_PREPARATION = "WAITING_PREPARATION"
    PREPARING = "PREPARING"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    CANCELLED_PREPARATION = "CANCELLED_PREPARATION"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class TargetType(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class StockMovementType(str, Enum):
    SALES_OUT = "SALES_OUT"
    ORDER_RELEASE_IN = "ORDER_RELEASE_IN"
    PRODUCTION_IN = "PRODUCTION_IN"
    PRODUCTION_VOID_OUT = "PRODUCTION_VOID_OUT"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
    OPNAME_ADJUSTMENT = "OPNAME_ADJUSTMENT"
    RETURN_IN = "RETURN_IN"


class MovementDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


class UserRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    SALES = "SALES"
    WAREHOUSE = "WAREHOUSE"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    GIRO = "GIRO"


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class ProductionStatus(str, Enum):
    COMPLETED = "COMPLETED"
    VOIDED = "VOIDED"


class AdjustmentKind(str, Enum):
    IN = "IN"
    OUT = "OUT"
    OPNAME_ADJUSTMENT = "OPNAME_ADJUSTMENT"


class OpnameStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    RECONCILED = "RECONCILED"
    COMPLETED = "COMPLETED"


class ReceivableCategory(str, Enum):
    CURRENT = "CURRENT"
    OVERDUE_1_30 = "OVERDUE_1_30"
    OVERDUE_31_60 = "OVERDUE_31_60"
    OVERDUE_60_PLUS = "OVERDUE_60_PLUS"


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class TimeRange(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


# =============================================================================
# LABELS
# =============================================================================

LABELS: dict[type[Enum], dict[Enum, str]] = {
    OrderStatus: {
        OrderStatus.NEW: "New",
        OrderStatus.PENDING_CONFIRMATION: "Pending confirmation",
        OrderStatus.IN_PROCESS: "In process",
        OrderStatus.COMPLETED: "Completed",
        OrderStatus.CANCELED: "Canceled",
    },
    PurchaseOrderStatus: {
        PurchaseOrderStatus.PENDING: "Pending",
        PurchaseOrderStatus.PROCESSING: "Processing",
        PurchaseOrderStatus.COMPLETED: "Completed",
        PurchaseOrderStatus.CANCELLED: "Cancelled",
    },
    StockConfirmationStatus: {
        StockConfirmationStatus.WAITING_CONFIRMATION: "Waiting for confirmation",
        StockConfirmationStatus.STOCK_AVAILABLE: "Stock available",
        StockConfirmationStatus.INSUFFICIENT_STOCK: "Insufficient stock",
    },
    InvoiceStatus: {
        InvoiceStatus.DRAFT: "Draft",
        InvoiceStatus.SENT: "Sent",
        InvoiceStatus.PAID: "Paid",
        InvoiceStatus.OVERDUE: "Overdue",
        InvoiceStatus.CANCELLED: "Cancelled",
    },
    PaymentStatus: {
        PaymentStatus.UNPAID: "Unpaid",
        PaymentStatus.PARTIALLY_PAID: "Partially paid",
        PaymentStatus.PAID: "Paid",
        PaymentStatus.OVERPAID: "Overpaid",
    },
    PreparationStatus: {
        PreparationStatus.WAITING_PREPARATION: "Waiting for preparation",
        PreparationStatus.PREPARING: "Preparing",
        PreparationStatus.READY_FOR_DELIVERY: "Ready for delivery",
        PreparationStatus.CANCELLED_PREPARATION: "Preparation cancelled",
    },
    DeliveryStatus: {
        DeliveryStatus.PENDING: "Pending",
        DeliveryStatus.IN_TRANSIT: "In transit",
        DeliveryStatus.DELIVERED: "Delivered",
        DeliveryStatus.RETURNED: "Returned",
        DeliveryStatus.CANCELLED: "Cancelled",
    },
    TargetType: {
        TargetType.MONTHLY: "Monthly",
        TargetType.QUARTERLY: "Quarterly",
        TargetType.YEARLY: "Yearly",
    },
    StockMovementType: {
        StockMovementType.SALES_OUT: "Sales order",
        StockMovementType.ORDER_RELEASE_IN: "Order reservation released",
        StockMovementType.PRODUCTION_IN: "Production",
        StockMovementType.PRODUCTION_VOID_OUT: "Production voided",
        StockMovementType.ADJUSTMENT_IN: "Stock in",
        StockMovementType.ADJUSTMENT_OUT: "Stock out",
        StockMovementType.OPNAME_ADJUSTMENT: "Stock opname adjustment",
        StockMovementType.RETURN_IN: "Delivery return",
    },
    UserRole: {
        UserRole.OWNER: "Owner",
        UserRole.ADMIN: "Administrator",
        UserRole.SALES: "Sales",
        UserRole.WAREHOUSE: "Warehouse",
    },
    PaymentMethod: {
        PaymentMethod.CASH: "Cash",
        PaymentMethod.BANK_TRANSFER: "Bank transfer",
        PaymentMethod.CHECK: "Check",
        PaymentMethod.GIRO: "Giro",
    },
    ReceivableCategory: {
        ReceivableCategory.CURRENT: "Current",
        ReceivableCategory.OVERDUE_1_30: "1-30 days overdue",
        ReceivableCategory.OVERDUE_31_60: "31-60 days overdue",
        ReceivableCategory.OVERDUE_60_PLUS: "Over 60 days overdue",
    },
}


def label_for(member: Enum) -> str:
    """Display label for an enum member; KeyError when the map is incomplete."""
    return LABELS[type(member)][member]


def parse_enum(enum_cls: type[Enum], value, field: str):
    """
    Convert a raw request value into an enum member.

    Raises:
        ValidationError: naming the accepted values
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if member.value == value.strip() or member.name == value.strip().upper():
                return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {field}: {value!r}. Must be one of {allowed}")
