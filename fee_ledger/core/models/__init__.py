from fee_ledger.core.models.school import School
from fee_ledger.core.models.academic_year import AcademicYear
from fee_ledger.core.models.class_model import SchoolClass
from fee_ledger.core.models.student import Student
from fee_ledger.core.models.fee_category import FeeCategory
from fee_ledger.core.models.fee_type import FeeType
from fee_ledger.core.models.fee_type_group import FeeTypeGroup, FeeTypeGroupItem
from fee_ledger.core.models.installment import InstallmentPlan
from fee_ledger.core.models.concession_type import ConcessionType
from fee_ledger.core.models.payment_method import PaymentMethod
from fee_ledger.core.models.fee_structure import FeeStructure, FeeStructureItem
from fee_ledger.core.models.student_fee_payment import StudentFeePayment
from fee_ledger.core.models.ledger_payment import LedgerPayment
from fee_ledger.core.models.student_fee_concession import StudentFeeConcession
from fee_ledger.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "School",
    "AcademicYear",
    "SchoolClass",
    "Student",
    "FeeCategory",
    "FeeType",
    "FeeTypeGroup",
    "FeeTypeGroupItem",
    "InstallmentPlan",
    "ConcessionType",
    "PaymentMethod",
    "FeeStructure",
    "FeeStructureItem",
    "StudentFeePayment",
    "LedgerPayment",
    "StudentFeeConcession",
    "FeeAuditLog",
]
