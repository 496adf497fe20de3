import datetime
import json
import logging
import os
from functools import wraps

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_mail import Mail
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity, JWTManager
import redis

from smartpark import cars, engine, ledger, registry, reports
from smartpark.database import db
from smartpark.errors import ParkingError, Unauthorized, ValidationError
from smartpark.models import User
from smartpark.timeutils import parse_timestamp, utcnow

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Setup file paths
base_dir = os.path.abspath(os.path.dirname(__file__))

app = Flask(__name__)

# --- Application Configuration ---
# Every setting can be overridden from the environment (SMARTPARK_*)
app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
    'SMARTPARK_DATABASE_URI', 'sqlite:///' + os.path.join(base_dir, 'smartpark.db')
)
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
    # Concurrent writers wait for the file lock instead of failing at once
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {'connect_args': {'timeout': 30}}
app.config['JWT_SECRET_KEY'] = os.getenv('SMARTPARK_JWT_SECRET', 'smartpark-secret-key-change-in-prod')
app.config['HOURLY_RATE'] = int(os.getenv('SMARTPARK_HOURLY_RATE', '500'))
app.config['REDIS_URL'] = os.getenv('SMARTPARK_REDIS_URL', 'redis://localhost:6379/0')

# Email Configuration (localhost debugging server for dev)
app.config['MAIL_SERVER'] = os.getenv('SMARTPARK_MAIL_SERVER', 'localhost')
app.config['MAIL_PORT'] = int(os.getenv('SMARTPARK_MAIL_PORT', '1025'))
app.config['MAIL_USE_TLS'] = False
app.config['MAIL_USERNAME'] = None
app.config['MAIL_PASSWORD'] = None
app.config['MAIL_DEFAULT_SENDER'] = 'no-reply@smartpark.local'
app.config['MAIL_SUPPRESS_SEND'] = os.getenv('SMARTPARK_MAIL_SUPPRESS_SEND', '0') == '1'

# Initialize plugins
mail = Mail(app)
jwt = JWTManager(app)
db.init_app(app)
CORS(app, resources={r"/api/*": {"origins": "*"}})

# Redis read cache. The client connects lazily, and an empty URL disables it.
cache = redis.Redis.from_url(app.config['REDIS_URL']) if app.config['REDIS_URL'] else None

SLOTS_KEY = 'parking_slots'
ACTIVE_KEY = 'active_sessions'


# --- Helper Decorator ---
# Only lets users with the 'admin' role through
def admin_access_only():
    def wrapper(fn):
        @wraps(fn)
        def decorator(*args, **kwargs):
            user = db.session.get(User, int(get_jwt_identity()))

            if user and user.role == 'admin':
                return fn(*args, **kwargs)
            return jsonify({"message": "Access Denied: Admins Only"}), 403
        return decorator
    return wrapper


# --- Helper Functions for Caching ---
# Redis is only an accelerator: failures are logged and the database answers instead.
def cache_get(key):
    if not cache:
        return None
    try:
        cached = cache.get(key)
    except redis.RedisError as e:
        logger.warning('Redis read of %s failed: %s', key, e)
        return None
    return json.loads(cached) if cached else None


def cache_set(key, ttl, data):
    if not cache:
        return
    try:
        cache.setex(key, ttl, json.dumps(data))
    except redis.RedisError as e:
        logger.warning('Redis write of %s failed: %s', key, e)


def clear_cache(patterns):
    """Clears Redis cache keys matching the given patterns."""
    if not cache:
        return
    try:
        keys_to_delete = []
        for pattern in patterns:
            keys_to_delete.extend(cache.keys(pattern))

        if keys_to_delete:
            cache.delete(*keys_to_delete)
            logger.debug('Cache cleared for keys: %s', keys_to_delete)
    except redis.RedisError as e:
        logger.warning('Redis cache clear failed: %s', e)


def current_principal_id():
    identity = get_jwt_identity()
    return int(identity) if identity is not None else None


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Validation Error: JSON body required')
    return data


def parse_date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Validation Error: {name} must be YYYY-MM-DD') from None


def parse_time_field(data, name):
    raw = data.get(name)
    if not raw:
        return None
    try:
        return parse_timestamp(raw)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f'Validation Error: {name} must be an ISO 8601 timestamp') from None


def slot_to_dict(slot):
    return {'slot_number': slot.slot_number, 'status': slot.status.value}


@app.errorhandler(ParkingError)
def handle_parking_error(error):
    return jsonify(error.to_dict()), error.status_code


# ==========================================
# AUTHENTICATION ROUTES
# ==========================================

@app.route('/api/register', methods=['POST'])
def process_registration():
    data = get_json_body()
    u_name = data.get('username')
    u_pass = data.get('password')

    if not u_name or not u_pass:
        return jsonify({'message': 'Username and password are required'}), 400

    if User.query.filter_by(username=u_name).first():
        return jsonify({'message': 'Username taken'}), 409

    new_entry = User(username=u_name, email=data.get('email'), role='attendant')
    new_entry.set_password(u_pass)

    db.session.add(new_entry)
    db.session.commit()
    logger.info('New user registered: %s', u_name)

    return jsonify({'message': 'Registration successful'}), 201


@app.route('/api/login', methods=['POST'])
def perform_login():
    data = get_json_body()
    username = data.get('username')
    password = data.get('password')

    user = User.query.filter_by(username=username).first()

    if user and user.check_password(password or ''):
        # Token identity is the user id; it becomes the payment principal
        token = create_access_token(identity=str(user.id))
        logger.info('Login successful for %s', username)

        return jsonify({
            'message': 'Login successful',
            'access_token': token,
            'role': user.role
        }), 200

    logger.info('Failed login attempt for %s', username)
    return jsonify({'message': 'Bad credentials'}), 401


@app.route('/api/user', methods=['GET'])
@jwt_required()
def current_user_profile():
    """Returns the logged in user behind the token."""
    user = db.session.get(User, current_principal_id())
    if not user:
        # Token outlived its user
        raise Unauthorized('Not authenticated')

    return jsonify({
        'id': user.id,
        'username': user.username,
        'role': user.role
    }), 200


# ==========================================
# PARKING SLOT ROUTES
# ==========================================

@app.route('/api/parking-slots', methods=['GET'])
@jwt_required()
def fetch_all_slots():
    cached = cache_get(SLOTS_KEY)
    if cached is not None:
        return jsonify(cached), 200

    output = [slot_to_dict(s) for s in registry.list_slots(db.session)]
    cache_set(SLOTS_KEY, 30, output)
    return jsonify(output), 200


@app.route('/api/parking-slots', methods=['POST'])
@jwt_required()
@admin_access_only()
def add_new_slot():
    data = get_json_body()
    slot = registry.create_slot(db.session, data.get('slot_number'))
    clear_cache([SLOTS_KEY])
    return jsonify({'message': 'Parking slot added successfully', 'slot': slot_to_dict(slot)}), 201


@app.route('/api/parking-slots/<int:slot_number>', methods=['DELETE'])
@jwt_required()
@admin_access_only()
def remove_slot(slot_number):
    registry.delete_slot(db.session, slot_number)
    clear_cache([SLOTS_KEY])
    return jsonify({'message': 'Parking slot deleted successfully'}), 200


# ==========================================
# CAR ROUTES
# ==========================================

def car_to_dict(car):
    return {
        'plate_number': car.plate_number,
        'driver_name': car.driver_name,
        'phone_number': car.phone_number
    }


@app.route('/api/cars', methods=['GET'])
@jwt_required()
def fetch_all_cars():
    return jsonify([car_to_dict(c) for c in cars.list_cars(db.session)]), 200


@app.route('/api/cars/<plate_number>', methods=['GET'])
@jwt_required()
def fetch_car(plate_number):
    return jsonify(car_to_dict(cars.get_car(db.session, plate_number))), 200


@app.route('/api/cars', methods=['POST'])
@jwt_required()
def save_car():
    data = get_json_body()
    try:
        car = cars.upsert_car(db.session, data.get('plate_number'), data.get('driver_name'), data.get('phone_number'))
        db.session.commit()
    except ParkingError:
        db.session.rollback()
        raise

    # The active sessions listing shows driver details
    clear_cache([ACTIVE_KEY])
    return jsonify({'message': 'Car saved', 'plate_number': car.plate_number}), 200


# ==========================================
# PARKING RECORD ROUTES (Entry / Exit)
# ==========================================

@app.route('/api/parking-records/entry', methods=['POST'])
@jwt_required()
def record_entry():
    data = get_json_body()
    session_id = engine.enter_vehicle(
        db.session,
        data.get('plate_number'),
        data.get('slot_number'),
        data.get('driver_name'),
        data.get('phone_number'),
        entry_time=parse_time_field(data, 'entry_time'),
    )

    clear_cache([SLOTS_KEY, ACTIVE_KEY])
    return jsonify({
        'message': 'Car entry recorded successfully',
        'parking_record_id': session_id
    }), 201


@app.route('/api/parking-records/exit', methods=['POST'])
@jwt_required()
def record_exit():
    data = get_json_body()
    receipt = engine.exit_vehicle(
        db.session,
        data.get('parking_record_id'),
        current_principal_id(),
        exit_time=parse_time_field(data, 'exit_time'),
        hourly_rate=app.config['HOURLY_RATE'],
    )

    clear_cache([SLOTS_KEY, ACTIVE_KEY, f"daily_report_{receipt.exit_time.date().isoformat()}"])
    return jsonify({
        'message': 'Car exit processed successfully',
        'payment_id': receipt.payment_id,
        'amount': float(receipt.amount),
        'duration_hours': receipt.duration_hours,
        'slot_number': receipt.slot_number
    }), 200


@app.route('/api/parking-records/active', methods=['GET'])
@jwt_required()
def fetch_active_records():
    cached = cache_get(ACTIVE_KEY)
    if cached is not None:
        return jsonify(cached), 200

    output = [{
        'id': s.id,
        'plate_number': s.plate_number,
        'slot_number': s.slot_number,
        'entry_time': s.entry_time.isoformat(),
        'driver_name': c.driver_name,
        'phone_number': c.phone_number
    } for s, c in ledger.list_open_sessions(db.session)]

    cache_set(ACTIVE_KEY, 30, output)
    return jsonify(output), 200


# ==========================================
# PAYMENTS & REPORTS
# ==========================================

@app.route('/api/payments', methods=['GET'])
@jwt_required()
def fetch_payments():
    start = parse_date_arg('startDate')
    end = parse_date_arg('endDate')
    return jsonify(reports.list_payments(db.session, start, end)), 200


@app.route('/api/payments/<int:payment_id>', methods=['GET'])
@jwt_required()
def fetch_payment(payment_id):
    return jsonify(reports.get_payment(db.session, payment_id)), 200


@app.route('/api/reports/daily', methods=['GET'])
@jwt_required()
def fetch_daily_report():
    day = parse_date_arg('date') or utcnow().date()

    cache_key = f"daily_report_{day.isoformat()}"
    cached = cache_get(cache_key)
    if cached is not None:
        return jsonify(cached), 200

    result = reports.daily_report(db.session, day)
    cache_set(cache_key, 60, result)
    return jsonify(result), 200


@app.route('/api/reports/email', methods=['POST'])
@jwt_required()
@admin_access_only()
def trigger_report_job():
    """Queues the daily revenue e-mail for a given day (default: yesterday)."""
    # Import locally to avoid circular dependency with celery_worker
    from smartpark.tasks import send_daily_report

    data = request.get_json(silent=True) or {}
    day = data.get('date')
    if day:
        try:
            datetime.date.fromisoformat(day)
        except (TypeError, ValueError):
            raise ValidationError('Validation Error: date must be YYYY-MM-DD') from None

    logger.info('Queueing daily report e-mail for %s', day or 'yesterday')
    send_daily_report.delay(day)

    return jsonify({"message": "Report queued. Check your email."}), 202


# Health Check Route
@app.route('/')
def health_check():
    return "SmartPark API is running."


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(debug=True)
