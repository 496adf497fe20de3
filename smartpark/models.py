import enum

from werkzeug.security import generate_password_hash, check_password_hash

from smartpark.database import db

# Schema for the parking database.
# Timestamps are naive UTC everywhere (see timeutils.py).


class SlotStatus(str, enum.Enum):
    AVAILABLE = 'available'
    OCCUPIED = 'occupied'


class User(db.Model):
    """
    Staff member who logs in and records payments (the authenticated principal).
    """
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    password_hash = db.Column(db.String(256), nullable=True)
    role = db.Column(db.String(20), nullable=False, default='attendant')

    payments = db.relationship('Payment', backref='recorder', lazy=True)

    def set_password(self, password):
        # Hashes the password before storing it
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)


class ParkingSlot(db.Model):
    """
    A physical parking space. Status is only ever 'available' or 'occupied'.
    """
    __tablename__ = 'parking_slot'

    slot_number = db.Column(db.Integer, primary_key=True, autoincrement=False)
    status = db.Column(
        db.Enum(
            SlotStatus,
            name='slot_status',
            values_callable=lambda statuses: [s.value for s in statuses],
            create_constraint=True,
            validate_strings=True,
        ),
        nullable=False,
        default=SlotStatus.AVAILABLE,
    )

    sessions = db.relationship('ParkingSession', backref='slot', lazy=True)


class Car(db.Model):
    __tablename__ = 'car'

    plate_number = db.Column(db.String(20), primary_key=True)
    driver_name = db.Column(db.String(100), nullable=False)
    phone_number = db.Column(db.String(20), nullable=False)

    sessions = db.relationship('ParkingSession', backref='car', lazy=True)


class ParkingSession(db.Model):
    """
    One occupancy interval of a slot. Open while exit_time is NULL.
    """
    __tablename__ = 'parking_session'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    plate_number = db.Column(db.String(20), db.ForeignKey('car.plate_number'), nullable=False)
    slot_number = db.Column(db.Integer, db.ForeignKey('parking_slot.slot_number'), nullable=False)
    entry_time = db.Column(db.DateTime, nullable=False)
    exit_time = db.Column(db.DateTime, nullable=True)
    duration_hours = db.Column(db.Integer, nullable=True)

    payment = db.relationship('Payment', backref='session', uselist=False, lazy=True)

    # At most one open session per slot and per plate, enforced by the store itself
    __table_args__ = (
        db.Index(
            'uq_open_session_slot_number', 'slot_number', unique=True,
            sqlite_where=db.text('exit_time IS NULL'),
            postgresql_where=db.text('exit_time IS NULL'),
        ),
        db.Index(
            'uq_open_session_plate_number', 'plate_number', unique=True,
            sqlite_where=db.text('exit_time IS NULL'),
            postgresql_where=db.text('exit_time IS NULL'),
        ),
        db.CheckConstraint('duration_hours IS NULL OR duration_hours >= 1', name='ck_duration_positive'),
    )

    @property
    def is_open(self):
        return self.exit_time is None


class Payment(db.Model):
    """
    Fee collected when a session is closed. Exactly one per closed session.
    """
    __tablename__ = 'payment'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    session_id = db.Column(db.Integer, db.ForeignKey('parking_session.id'), unique=True, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_time = db.Column(db.DateTime, nullable=False)
    recorded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    __table_args__ = (
        db.CheckConstraint('amount >= 0', name='ck_amount_non_negative'),
    )
