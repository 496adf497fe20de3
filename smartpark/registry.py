"""
Slot registry: availability state of every parking slot.

get_status / mark_occupied / mark_available never commit; they are meant to
run inside the engine's unit of work. The administrative helpers at the
bottom (create, delete, seed) are standalone and commit themselves.
"""
import logging

from sqlalchemy import func, select, update

from smartpark.errors import Conflict, SlotInUse, SlotNotFound, SlotOccupied, ValidationError
from smartpark.models import ParkingSession, ParkingSlot, SlotStatus

logger = logging.getLogger(__name__)


def require_slot_number(value):
    """Accepts an int or a string of digits (form/JSON input); anything else is rejected."""
    # ASCII digits only: int() rejects other Unicode digits such as "²"
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        value = int(value.strip())
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError('Slot number must be a positive integer')
    return value


def get_status(db, slot_number):
    status = db.execute(
        select(ParkingSlot.status).where(ParkingSlot.slot_number == slot_number)
    ).scalar_one_or_none()
    if status is None:
        raise SlotNotFound(slot_number)
    return status


def mark_occupied(db, slot_number):
    # Check-and-set: only an available slot flips, so a concurrent entry that
    # got there first leaves rowcount at zero.
    result = db.execute(
        update(ParkingSlot)
        .where(ParkingSlot.slot_number == slot_number, ParkingSlot.status == SlotStatus.AVAILABLE)
        .values(status=SlotStatus.OCCUPIED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    # Nothing changed: tell "missing" from "taken"
    get_status(db, slot_number)
    raise SlotOccupied(slot_number)


def mark_available(db, slot_number):
    result = db.execute(
        update(ParkingSlot)
        .where(ParkingSlot.slot_number == slot_number)
        .values(status=SlotStatus.AVAILABLE)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise SlotNotFound(slot_number)


# ==========================================
# ADMINISTRATIVE MASTER DATA
# ==========================================

def list_slots(db):
    return db.execute(select(ParkingSlot).order_by(ParkingSlot.slot_number)).scalars().all()


def create_slot(db, slot_number):
    slot_number = require_slot_number(slot_number)
    if db.get(ParkingSlot, slot_number) is not None:
        raise Conflict(f'Parking slot {slot_number} already exists')

    slot = ParkingSlot(slot_number=slot_number, status=SlotStatus.AVAILABLE)
    db.add(slot)
    db.commit()
    logger.info('Parking slot %s created', slot_number)
    return slot


def delete_slot(db, slot_number):
    slot_number = require_slot_number(slot_number)
    slot = db.get(ParkingSlot, slot_number)
    if slot is None:
        raise SlotNotFound(slot_number)

    if slot.status == SlotStatus.OCCUPIED:
        raise SlotInUse(slot_number, 'slot is occupied')

    # Historical sessions keep referencing the slot, so it must stay
    referenced = db.execute(
        select(func.count(ParkingSession.id)).where(ParkingSession.slot_number == slot_number)
    ).scalar_one()
    if referenced:
        raise SlotInUse(slot_number, 'slot has associated parking records')

    db.delete(slot)
    db.commit()
    logger.info('Parking slot %s deleted', slot_number)


def seed_slots(db, count):
    """Creates slots 1..count when no slot exists yet. Returns how many were added."""
    existing = db.execute(select(func.count(ParkingSlot.slot_number))).scalar_one()
    if existing:
        return 0

    for number in range(1, count + 1):
        db.add(ParkingSlot(slot_number=number, status=SlotStatus.AVAILABLE))
    db.commit()
    logger.info('Seeded %d initial parking slots', count)
    return count
