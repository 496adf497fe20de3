"""
Read-only payment listings and revenue reports.

Rows come back as plain dicts ready for jsonify; presentation (tables,
receipts, exports) belongs to the client.
"""
import decimal

from sqlalchemy import func, select

from smartpark.errors import PaymentNotFound
from smartpark.models import Car, ParkingSession, Payment, User
from smartpark.timeutils import day_bounds


def _isoformat(value):
    return value.isoformat() if value else None


def _payment_query():
    return (
        select(Payment, ParkingSession, Car, User)
        .join(ParkingSession, Payment.session_id == ParkingSession.id)
        .join(Car, ParkingSession.plate_number == Car.plate_number)
        .outerjoin(User, Payment.recorded_by == User.id)
    )


def _payment_row(payment, session, car, user):
    return {
        'payment_id': payment.id,
        'session_id': session.id,
        'amount_paid': float(payment.amount),
        'payment_time': _isoformat(payment.payment_time),
        'plate_number': car.plate_number,
        'slot_number': session.slot_number,
        'entry_time': _isoformat(session.entry_time),
        'exit_time': _isoformat(session.exit_time),
        'duration_hours': session.duration_hours,
        'driver_name': car.driver_name,
        'phone_number': car.phone_number,
        'received_by': user.username if user else None,
    }


def _filter_dates(query, start_date=None, end_date=None):
    # Dates are inclusive on both ends and compare against the payment day
    if start_date:
        query = query.where(Payment.payment_time >= day_bounds(start_date)[0])
    if end_date:
        query = query.where(Payment.payment_time < day_bounds(end_date)[1])
    return query


def list_payments(db, start_date=None, end_date=None):
    query = _filter_dates(_payment_query(), start_date, end_date)
    query = query.order_by(Payment.payment_time.desc(), Payment.id.desc())
    return [_payment_row(*row) for row in db.execute(query).all()]


def get_payment(db, payment_id):
    row = db.execute(_payment_query().where(Payment.id == payment_id)).first()
    if row is None:
        raise PaymentNotFound(payment_id)
    return _payment_row(*row)


def daily_report(db, day):
    records = list_payments(db, day, day)
    total = sum(decimal.Decimal(str(r['amount_paid'])) for r in records)
    return {
        'date': day.isoformat(),
        'total_amount': float(total),
        'records': records,
    }


def revenue_summary(db, start_date, end_date):
    """Payment count and revenue for an inclusive date range, computed in SQL."""
    query = _filter_dates(
        select(func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0)),
        start_date, end_date,
    )
    count, total = db.execute(query).one()
    return {
        'start_date': start_date.isoformat(),
        'end_date': end_date.isoformat(),
        'payments': count,
        'total_amount': float(total or 0),
    }
