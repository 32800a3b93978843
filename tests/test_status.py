from decimal import Decimal

import pytest

from fee_ledger.api.v1.fees.ledger_service import derive_status
from fee_ledger.core.enums import PaymentStatus


@pytest.mark.parametrize(
    "assigned, paid, expected",
    [
        ("5000", "0", PaymentStatus.pending),
        ("5000", "0.01", PaymentStatus.partially_paid),
        ("5000", "4999.99", PaymentStatus.partially_paid),
        ("5000", "5000", PaymentStatus.paid),
        ("4000.00", "4000", PaymentStatus.paid),
        ("0", "0", PaymentStatus.paid),
    ],
)
def test_derive_status(assigned, paid, expected) -> None:
    assert derive_status(Decimal(assigned), Decimal(paid)) == expected


def test_derive_status_accepts_floats_from_the_driver() -> None:
    # SQLite hands Numeric back through float
    assert derive_status(100.1, 100.10000000000001) == PaymentStatus.paid
