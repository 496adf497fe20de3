"""
Parking session lifecycle: vehicle entry and exit.

Both operations take the unit of work (a SQLAlchemy session) from the
caller, perform all their writes through it and commit exactly once. Any
failure rolls the whole unit back before the typed error propagates, so a
failed entry leaves no session behind and a failed exit leaves the session
open and the slot occupied (safe to retry).

Atomicity does not rely on in-process locks: the slot flip is a
check-and-set UPDATE and open sessions are guarded by partial unique
indexes, so concurrent callers in different processes still see exactly one
winner.
"""
import dataclasses
import datetime
import decimal
import logging

from sqlalchemy.exc import SQLAlchemyError

from smartpark import billing, cars, ledger, registry
from smartpark.errors import (
    CarAlreadyParked, ParkingError, SlotOccupied, StoreError, Unauthorized, ValidationError,
)
from smartpark.models import Payment, SlotStatus, User
from smartpark.timeutils import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ExitReceipt:
    session_id: int
    payment_id: int
    slot_number: int
    amount: decimal.Decimal
    duration_hours: int
    exit_time: datetime.datetime


def _require_id(value, label):
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'Validation Error: {label} must be a positive integer')
    return value


def _run_atomically(db, operation, action):
    """Runs `action()` and commits, or rolls back and re-raises as a typed error."""
    try:
        result = action()
        db.commit()
        return result
    except ParkingError as exc:
        db.rollback()
        logger.info('%s rejected: %s', operation, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('%s failed in the store', operation)
        raise StoreError(f'{operation} could not be saved, no changes were applied') from exc


def enter_vehicle(db, plate_number, slot_number, driver_name, phone_number, entry_time=None):
    """
    Parks a car in a slot and returns the new session id.

    Raises ValidationError, SlotNotFound, SlotOccupied, CarAlreadyParked or
    StoreError. The car record is upserted in the same unit, so a rejected
    entry does not touch it either.
    """
    plate_number = cars.normalize_plate(plate_number)
    slot_number = registry.require_slot_number(slot_number)
    entry_time = as_naive_utc(entry_time) or utcnow()

    def action():
        cars.upsert_car(db, plate_number, driver_name, phone_number)

        if registry.get_status(db, slot_number) == SlotStatus.OCCUPIED:
            raise SlotOccupied(slot_number)
        if ledger.find_open_session_for_plate(db, plate_number) is not None:
            raise CarAlreadyParked(plate_number)

        session_id = ledger.open_session(db, plate_number, slot_number, entry_time)
        registry.mark_occupied(db, slot_number)
        return session_id

    session_id = _run_atomically(db, 'Entry', action)
    logger.info('Session %s opened: %s in slot %s', session_id, plate_number, slot_number)
    return session_id


def exit_vehicle(db, session_id, principal_id, exit_time=None, hourly_rate=billing.HOURLY_RATE):
    """
    Closes an open session, bills it and frees its slot.

    `principal_id` is the authenticated staff member recording the payment.
    Raises Unauthorized, ValidationError, SessionNotFound,
    SessionAlreadyClosed or StoreError.
    """
    if principal_id is None:
        raise Unauthorized('A logged in user is required to record a payment')
    principal_id = _require_id(principal_id, 'principal id')
    session_id = _require_id(session_id, 'parking record id')
    exit_time = as_naive_utc(exit_time) or utcnow()

    def action():
        # The payment must be attributable to a real user
        if db.get(User, principal_id) is None:
            raise Unauthorized(f'Unknown user {principal_id} cannot record a payment')
        session = ledger.get_open_session(db, session_id)
        slot_number = session.slot_number
        amount, duration_hours = billing.compute_fee(session.entry_time, exit_time, hourly_rate)

        ledger.close_session(db, session_id, exit_time, duration_hours)
        payment = Payment(
            session_id=session_id,
            amount=decimal.Decimal(str(amount)),
            payment_time=exit_time,
            recorded_by=principal_id,
        )
        db.add(payment)
        db.flush()
        registry.mark_available(db, slot_number)

        return ExitReceipt(
            session_id=session_id,
            payment_id=payment.id,
            slot_number=slot_number,
            amount=payment.amount,
            duration_hours=duration_hours,
            exit_time=exit_time,
        )

    receipt = _run_atomically(db, 'Exit', action)
    logger.info(
        'Session %s closed after %d h, payment %s of %s recorded by user %s',
        receipt.session_id, receipt.duration_hours, receipt.payment_id, receipt.amount, principal_id,
    )
    return receipt
