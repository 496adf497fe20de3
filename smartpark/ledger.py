"""
Session ledger: open/closed state of parking sessions.

Like the slot registry, nothing here commits. The caller's unit of work
decides whether the writes stick.
"""
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from smartpark.errors import CarAlreadyParked, SessionAlreadyClosed, SessionNotFound, SlotOccupied
from smartpark.models import Car, ParkingSession


def open_session(db, plate_number, slot_number, entry_time):
    session = ParkingSession(plate_number=plate_number, slot_number=slot_number, entry_time=entry_time)
    db.add(session)
    try:
        db.flush()
    except IntegrityError as exc:
        # One of the partial unique indexes fired: the precondition check
        # that ran before us was already stale.
        if 'plate_number' in str(exc.orig):
            raise CarAlreadyParked(plate_number) from exc
        raise SlotOccupied(slot_number) from exc
    return session.id


def close_session(db, session_id, exit_time, duration_hours):
    result = db.execute(
        update(ParkingSession)
        .where(ParkingSession.id == session_id, ParkingSession.exit_time.is_(None))
        .values(exit_time=exit_time, duration_hours=duration_hours)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    # Read the column again rather than trusting a possibly stale identity map
    exists = db.execute(
        select(ParkingSession.id).where(ParkingSession.id == session_id)
    ).scalar_one_or_none()
    if exists is None:
        raise SessionNotFound(session_id)
    raise SessionAlreadyClosed(session_id)


def get_session(db, session_id):
    session = db.get(ParkingSession, session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def get_open_session(db, session_id):
    session = get_session(db, session_id)
    if not session.is_open:
        raise SessionAlreadyClosed(session_id)
    return session


def find_open_session_for_plate(db, plate_number):
    return db.execute(
        select(ParkingSession).where(
            ParkingSession.plate_number == plate_number,
            ParkingSession.exit_time.is_(None),
        )
    ).scalars().first()


def list_open_sessions(db):
    """Open sessions with their car, newest entry first."""
    rows = db.execute(
        select(ParkingSession, Car)
        .join(Car, ParkingSession.plate_number == Car.plate_number)
        .where(ParkingSession.exit_time.is_(None))
        .order_by(ParkingSession.entry_time.desc(), ParkingSession.id.desc())
    ).all()
    return [(session, car) for session, car in rows]
