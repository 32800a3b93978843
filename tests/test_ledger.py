import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.catalog import service as catalog
from fee_ledger.api.v1.catalog.schemas import (
    ConcessionTypeCreate,
    FeeCategoryCreate,
    FeeTypeCreate,
    PaymentMethodCreate,
)
from fee_ledger.api.v1.fees import assignment_service, ledger_service, query_service
from fee_ledger.api.v1.fees.schemas import (
    AssignFeesRequest,
    ConcessionCreate,
    EditAssignmentRequest,
    PaymentCreate,
)
from fee_ledger.core.enums import FeeAuditAction, PaymentStatus
from fee_ledger.core.exceptions import (
    ExceedsDueError,
    HasPaymentsError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from fee_ledger.core.models import FeeAuditLog


@pytest.fixture()
async def tuition_row(db_session: AsyncSession, seed):
    """One Monthly Tuition row of 5000 for the first student."""
    fc = await catalog.create_fee_category(db_session, seed.school_id, FeeCategoryCreate(name="Tuition"))
    ft = await catalog.create_fee_type(
        db_session,
        seed.school_id,
        FeeTypeCreate(name="MONTHLY_TUITION", display_name="Monthly Tuition", fee_category_id=fc.id),
    )
    result = await assignment_service.assign_fees(
        db_session,
        seed.school_id,
        AssignFeesRequest(student_ids=[seed.students[0].id], fee_type_id=ft.id, amount=Decimal("5000")),
    )
    return result.row_ids[0]


@pytest.fixture()
async def concession_type(db_session: AsyncSession, seed):
    return await catalog.create_concession_type(
        db_session, seed.school_id, ConcessionTypeCreate(title="Merit scholarship")
    )


async def _pay(db, seed, row_id, amount, **kwargs):
    return await ledger_service.record_payment(
        db, seed.school_id, row_id, PaymentCreate(amount=Decimal(amount), **kwargs)
    )


async def _concede(db, seed, row_id, concession_type, amount):
    return await ledger_service.apply_concession(
        db,
        seed.school_id,
        row_id,
        ConcessionCreate(concession_type_id=concession_type.id, amount=Decimal(amount)),
    )


async def _audit_actions(db, row_id):
    result = await db.execute(
        select(FeeAuditLog.action_type)
        .where(FeeAuditLog.reference_id == row_id)
        .order_by(FeeAuditLog.created_at)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_tuition_end_to_end(db_session: AsyncSession, seed, tuition_row, concession_type) -> None:
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert (row.assigned_amount, row.paid_amount, row.status) == (Decimal("5000"), Decimal("0"), PaymentStatus.pending)

    paid = await _pay(db_session, seed, tuition_row, "2000")
    assert paid.row.paid_amount == Decimal("2000")
    assert paid.row.status == PaymentStatus.partially_paid

    conceded = await _concede(db_session, seed, tuition_row, concession_type, "1000")
    assert conceded.row.assigned_amount == Decimal("4000")
    assert conceded.row.paid_amount == Decimal("2000")
    assert conceded.row.status == PaymentStatus.partially_paid

    clamped = await _pay(db_session, seed, tuition_row, "5000")
    assert clamped.row.paid_amount == Decimal("4000")
    assert clamped.row.status == PaymentStatus.paid
    assert clamped.applied_amount == Decimal("2000")
    assert clamped.clamped_amount == Decimal("3000")
    assert clamped.payment.requested_amount == Decimal("5000")

    assert await _audit_actions(db_session, tuition_row) == [
        FeeAuditAction.CREATE.value,
        FeeAuditAction.PAYMENT.value,
        FeeAuditAction.CONCESSION.value,
        FeeAuditAction.PAYMENT.value,
    ]


@pytest.mark.asyncio
async def test_clamp_is_logged(db_session: AsyncSession, seed, tuition_row, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="fee_ledger.api.v1.fees.ledger_service"):
        await _pay(db_session, seed, tuition_row, "6000")
    assert "clamped" in caplog.text


@pytest.mark.asyncio
async def test_payment_order_does_not_matter(db_session: AsyncSession, seed) -> None:
    fc = await catalog.create_fee_category(db_session, seed.school_id, FeeCategoryCreate(name="Misc"))
    ft = await catalog.create_fee_type(
        db_session,
        seed.school_id,
        FeeTypeCreate(name="MISC", display_name="Misc", fee_category_id=fc.id, default_amount=Decimal("50")),
    )
    result = await assignment_service.assign_fees(
        db_session,
        seed.school_id,
        AssignFeesRequest(student_ids=[s.id for s in seed.students[:2]], fee_type_id=ft.id),
    )
    first, second = result.row_ids

    await _pay(db_session, seed, first, "30")
    end_a = (await _pay(db_session, seed, first, "20")).row
    await _pay(db_session, seed, second, "20")
    end_b = (await _pay(db_session, seed, second, "30")).row

    assert (end_a.paid_amount, end_a.status) == (Decimal("50"), PaymentStatus.paid)
    assert (end_b.paid_amount, end_b.status) == (Decimal("50"), PaymentStatus.paid)


@pytest.mark.asyncio
async def test_payment_appends_notes_and_tracks_latest_mode(db_session: AsyncSession, seed, tuition_row) -> None:
    for name in ("Cash", "UPI"):
        await catalog.create_payment_method(db_session, seed.school_id, PaymentMethodCreate(name=name))

    await _pay(db_session, seed, tuition_row, "100", note="Cash at counter", payment_mode="cash")
    result = await _pay(
        db_session, seed, tuition_row, "200",
        note="UPI ref 42", payment_mode="UPI", payment_date=date(2025, 7, 2),
    )
    assert result.row.notes == "Fee for: Monthly Tuition\nCash at counter\nUPI ref 42"
    assert result.row.payment_mode == "UPI"
    assert result.row.payment_date == date(2025, 7, 2)

    history = await query_service.get_payment_history(db_session, seed.school_id, seed.students[0].id)
    # latest payment_date first
    assert [p.applied_amount for p in history] == [Decimal("100"), Decimal("200")]
    assert [p.payment_mode for p in history] == ["Cash", "UPI"]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-10"])
async def test_non_positive_payment_rejected(db_session: AsyncSession, seed, tuition_row, amount) -> None:
    with pytest.raises(InvalidAmountError):
        await _pay(db_session, seed, tuition_row, amount)
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.paid_amount == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["10.005", "1E+12", "10000000000"])
async def test_payment_amount_must_fit_the_ledger(db_session: AsyncSession, seed, tuition_row, amount) -> None:
    with pytest.raises(InvalidAmountError):
        await _pay(db_session, seed, tuition_row, amount)
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.paid_amount == Decimal("0")
    assert await query_service.get_payment_history(db_session, seed.school_id, seed.students[0].id) == []


@pytest.mark.asyncio
async def test_concession_and_edit_amounts_must_fit_the_ledger(
    db_session: AsyncSession, seed, tuition_row, concession_type
) -> None:
    with pytest.raises(InvalidAmountError):
        await _concede(db_session, seed, tuition_row, concession_type, "100.001")
    with pytest.raises(InvalidAmountError):
        await ledger_service.edit_assignment(
            db_session, seed.school_id, tuition_row, EditAssignmentRequest(assigned_amount=Decimal("1E+12"))
        )
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.assigned_amount == Decimal("5000")
    assert row.version == 1


@pytest.mark.asyncio
async def test_unknown_payment_method_rejected(db_session: AsyncSession, seed, tuition_row) -> None:
    await catalog.create_payment_method(db_session, seed.other_school.id, PaymentMethodCreate(name="Cheque"))
    with pytest.raises(ValidationError):
        await _pay(db_session, seed, tuition_row, "100", payment_mode="Cheque")
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.paid_amount == Decimal("0")
    assert row.payment_mode is None


@pytest.mark.asyncio
async def test_payment_on_settled_row_rejected(db_session: AsyncSession, seed, tuition_row) -> None:
    await _pay(db_session, seed, tuition_row, "5000")
    with pytest.raises(InvalidAmountError):
        await _pay(db_session, seed, tuition_row, "1")


@pytest.mark.asyncio
async def test_row_of_other_school_is_not_found(db_session: AsyncSession, seed, tuition_row) -> None:
    with pytest.raises(NotFoundError):
        await ledger_service.record_payment(
            db_session, seed.other_school.id, tuition_row, PaymentCreate(amount=Decimal("10"))
        )


@pytest.mark.asyncio
async def test_full_waiver_marks_row_paid(db_session: AsyncSession, seed, tuition_row, concession_type) -> None:
    await _pay(db_session, seed, tuition_row, "1500")
    result = await _concede(db_session, seed, tuition_row, concession_type, "3500")
    assert result.row.assigned_amount == Decimal("1500")
    assert result.row.paid_amount == Decimal("1500")
    assert result.row.status == PaymentStatus.paid


@pytest.mark.asyncio
async def test_full_waiver_of_untouched_row(db_session: AsyncSession, seed, tuition_row, concession_type) -> None:
    result = await _concede(db_session, seed, tuition_row, concession_type, "5000")
    assert result.row.assigned_amount == Decimal("0")
    assert result.row.status == PaymentStatus.paid


@pytest.mark.asyncio
async def test_concession_exceeding_due_leaves_row_unchanged(
    db_session: AsyncSession, seed, tuition_row, concession_type
) -> None:
    await _pay(db_session, seed, tuition_row, "4000")
    with pytest.raises(ExceedsDueError):
        await _concede(db_session, seed, tuition_row, concession_type, "1000.01")
    with pytest.raises(InvalidAmountError):
        await _concede(db_session, seed, tuition_row, concession_type, "0")
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert (row.assigned_amount, row.paid_amount) == (Decimal("5000"), Decimal("4000"))


@pytest.mark.asyncio
async def test_concession_with_unknown_type_not_found(db_session: AsyncSession, seed, tuition_row) -> None:
    with pytest.raises(NotFoundError):
        await ledger_service.apply_concession(
            db_session,
            seed.school_id,
            tuition_row,
            ConcessionCreate(concession_type_id=uuid.uuid4(), amount=Decimal("10")),
        )


@pytest.mark.asyncio
async def test_reversal_restores_amount_and_reopens(
    db_session: AsyncSession, seed, tuition_row, concession_type
) -> None:
    await _pay(db_session, seed, tuition_row, "3000")
    applied = await _concede(db_session, seed, tuition_row, concession_type, "2000")
    assert applied.row.status == PaymentStatus.paid

    reversed_ = await ledger_service.reverse_concession(db_session, seed.school_id, applied.concession.id)
    assert reversed_.row.assigned_amount == Decimal("5000")
    assert reversed_.row.status == PaymentStatus.partially_paid
    assert reversed_.concession.amount == Decimal("-2000")
    assert reversed_.concession.reversal_of_id == applied.concession.id

    actions = await _audit_actions(db_session, tuition_row)
    assert FeeAuditAction.CONCESSION_REVERSAL.value in actions
    assert FeeAuditAction.REOPEN.value in actions

    with pytest.raises(ValidationError):
        await ledger_service.reverse_concession(db_session, seed.school_id, applied.concession.id)
    with pytest.raises(ValidationError):
        await ledger_service.reverse_concession(db_session, seed.school_id, reversed_.concession.id)

    history = await query_service.list_concessions(db_session, seed.school_id, row_id=tuition_row)
    assert sorted(c.amount for c in history) == [Decimal("-2000"), Decimal("2000")]


@pytest.mark.asyncio
async def test_edit_below_paid_rejected(db_session: AsyncSession, seed, tuition_row) -> None:
    await _pay(db_session, seed, tuition_row, "2000")
    with pytest.raises(InvalidAmountError):
        await ledger_service.edit_assignment(
            db_session, seed.school_id, tuition_row, EditAssignmentRequest(assigned_amount=Decimal("1999.99"))
        )
    with pytest.raises(InvalidAmountError):
        await ledger_service.edit_assignment(
            db_session, seed.school_id, tuition_row, EditAssignmentRequest(assigned_amount=Decimal("-1"))
        )
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.assigned_amount == Decimal("5000")


@pytest.mark.asyncio
async def test_edit_down_to_paid_then_reopen(db_session: AsyncSession, seed, tuition_row, caplog) -> None:
    await _pay(db_session, seed, tuition_row, "2000")
    settled = await ledger_service.edit_assignment(
        db_session,
        seed.school_id,
        tuition_row,
        EditAssignmentRequest(assigned_amount=Decimal("2000"), due_date=date(2025, 8, 1)),
    )
    assert settled.status == PaymentStatus.paid
    assert settled.due_date == date(2025, 8, 1)

    with caplog.at_level(logging.WARNING, logger="fee_ledger.api.v1.fees.ledger_service"):
        reopened = await ledger_service.edit_assignment(
            db_session, seed.school_id, tuition_row, EditAssignmentRequest(assigned_amount=Decimal("2500"))
        )
    assert reopened.status == PaymentStatus.partially_paid
    assert "re-opened" in caplog.text

    actions = await _audit_actions(db_session, tuition_row)
    assert actions[-2:] == [FeeAuditAction.UPDATE.value, FeeAuditAction.REOPEN.value]


@pytest.mark.asyncio
async def test_delete_with_payment_rejected(db_session: AsyncSession, seed, tuition_row) -> None:
    await _pay(db_session, seed, tuition_row, "1")
    with pytest.raises(HasPaymentsError):
        await ledger_service.delete_assignment(db_session, seed.school_id, tuition_row)
    row = await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert row.paid_amount == Decimal("1")


@pytest.mark.asyncio
async def test_delete_blocked_by_concession(db_session: AsyncSession, seed, tuition_row, concession_type) -> None:
    await _concede(db_session, seed, tuition_row, concession_type, "100")
    with pytest.raises(HasPaymentsError):
        await ledger_service.delete_assignment(db_session, seed.school_id, tuition_row)


@pytest.mark.asyncio
async def test_delete_unpaid_row(db_session: AsyncSession, seed, tuition_row) -> None:
    await ledger_service.delete_assignment(db_session, seed.school_id, tuition_row)
    with pytest.raises(NotFoundError):
        await query_service.get_ledger_row(db_session, seed.school_id, tuition_row)
    assert (await _audit_actions(db_session, tuition_row))[-1] == FeeAuditAction.DELETE.value


@pytest.mark.asyncio
async def test_balance_and_defaulter(db_session: AsyncSession, seed, tuition_row) -> None:
    await ledger_service.edit_assignment(
        db_session,
        seed.school_id,
        tuition_row,
        EditAssignmentRequest(due_date=date.today() - timedelta(days=1)),
    )
    await _pay(db_session, seed, tuition_row, "1000")

    balance = await query_service.get_student_balance(db_session, seed.school_id, seed.students[0].id)
    assert balance.total_assigned == Decimal("5000")
    assert balance.total_paid == Decimal("1000")
    assert balance.outstanding == Decimal("4000")
    assert balance.open_rows == 1
    assert balance.is_defaulter is True

    await _pay(db_session, seed, tuition_row, "4000")
    balance = await query_service.get_student_balance(db_session, seed.school_id, seed.students[0].id)
    assert balance.is_defaulter is False
    assert await query_service.count_pending(db_session, seed.school_id) == 0


@pytest.mark.asyncio
async def test_class_totals(db_session: AsyncSession, seed) -> None:
    fc = await catalog.create_fee_category(db_session, seed.school_id, FeeCategoryCreate(name="Tuition"))
    ft = await catalog.create_fee_type(
        db_session,
        seed.school_id,
        FeeTypeCreate(name="TERM", display_name="Term", fee_category_id=fc.id, default_amount=Decimal("1000")),
    )
    result = await assignment_service.assign_fees(
        db_session, seed.school_id, AssignFeesRequest(class_id=seed.school_class.id, fee_type_id=ft.id)
    )
    await _pay(db_session, seed, result.row_ids[0], "1000")
    await _pay(db_session, seed, result.row_ids[1], "250")

    totals = await query_service.get_class_totals(db_session, seed.school_id, seed.school_class.id)
    assert totals.total_assigned == Decimal("3000")
    assert totals.total_paid == Decimal("1250")
    assert totals.outstanding == Decimal("1750")
    assert totals.row_count == 3
    assert totals.student_count == 3
    assert totals.pending_count == 2

    with pytest.raises(NotFoundError):
        await query_service.get_class_totals(db_session, seed.other_school.id, seed.school_class.id)
