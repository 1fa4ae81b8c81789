"""
Status enumerations for reservation requests and payment obligations.
"""

from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    DENIED = 'Denied'
    CANCELLED = 'Cancelled'
    COMPLETED = 'Completed'
    CLOSED = 'Closed'


# Statuses that hold a confirmed interval and appear on the public calendar
CONFIRMED_STATUSES = (ReservationStatus.APPROVED, ReservationStatus.COMPLETED)

TERMINAL_STATUSES = (ReservationStatus.DENIED, ReservationStatus.CANCELLED, ReservationStatus.CLOSED)

VALID_TRANSITIONS = {
    ReservationStatus.PENDING: (
        ReservationStatus.APPROVED, ReservationStatus.DENIED, ReservationStatus.CANCELLED
    ),
    ReservationStatus.APPROVED: (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED),
    ReservationStatus.COMPLETED: (ReservationStatus.CLOSED,),
    ReservationStatus.DENIED: (),
    ReservationStatus.CANCELLED: (),
    ReservationStatus.CLOSED: (),
}


class PaymentStatus(str, Enum):
    PENDING = 'Pending'
    PAID = 'Paid'
    WAIVED = 'Waived'
    CANCELLED = 'Cancelled'
    REFUNDED = 'Refunded'


class PaymentMethod(str, Enum):
    CASH = 'Cash'
    CHECK = 'Check'
    MONEY_ORDER = 'Money Order'
    CASHAPP = 'CashApp'
    CREDIT_CARD = 'Credit Card'


# Methods staff may record by hand; card payments arrive from the gateway
MANUAL_PAYMENT_METHODS = (
    PaymentMethod.CASH, PaymentMethod.CHECK, PaymentMethod.MONEY_ORDER, PaymentMethod.CASHAPP
)


def confirmed_status_values() -> tuple:
    return tuple(status.value for status in CONFIRMED_STATUSES)
