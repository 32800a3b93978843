from enum import Enum


class FeeInstallmentType(str, Enum):
    installments = "installments"
    extra_charge = "extra_charge"


class PaymentStatus(str, Enum):
    pending = "Pending"
    partially_paid = "PartiallyPaid"
    paid = "Paid"


class FeeAuditAction(str, Enum):
    CREATE = "CREATE"
    PAYMENT = "PAYMENT"
    CONCESSION = "CONCESSION"
    CONCESSION_REVERSAL = "CONCESSION_REVERSAL"
    UPDATE = "UPDATE"
    REOPEN = "REOPEN"
    DELETE = "DELETE"


class AssignmentSkipReason(str, Enum):
    student_not_found = "student_not_found"
    fee_type_not_found = "fee_type_not_found"
    fee_category_not_found = "fee_category_not_found"
    zero_amount = "zero_amount"
    duplicate = "duplicate"
    error = "error"
