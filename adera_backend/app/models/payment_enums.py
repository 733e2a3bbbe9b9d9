"""
Payment and Transaction Enumerations.
"""

import enum


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    WALLET = "wallet"
    CASH = "cash"
    YENEPAY = "yenepay"
    TELEBIRR = "telebirr"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
