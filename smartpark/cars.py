from sqlalchemy import select

from smartpark.errors import CarNotFound, ValidationError
from smartpark.models import Car


def _clean(value, field):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'Validation Error: {field} is required')
    return value.strip()


def normalize_plate(plate_number):
    # Plates are compared case-insensitively and stored upper case
    return _clean(plate_number, 'plate number').upper()


def upsert_car(db, plate_number, driver_name, phone_number):
    """Inserts the car or refreshes its driver details. Flushes, does not commit."""
    plate_number = normalize_plate(plate_number)
    driver_name = _clean(driver_name, 'driver name')
    phone_number = _clean(phone_number, 'phone number')

    car = db.get(Car, plate_number)
    if car is None:
        car = Car(plate_number=plate_number, driver_name=driver_name, phone_number=phone_number)
        db.add(car)
    else:
        car.driver_name = driver_name
        car.phone_number = phone_number
    db.flush()
    return car


def car_exists(db, plate_number):
    return db.get(Car, normalize_plate(plate_number)) is not None


def list_cars(db):
    return db.execute(select(Car).order_by(Car.plate_number)).scalars().all()


def get_car(db, plate_number):
    car = db.get(Car, normalize_plate(plate_number))
    if car is None:
        raise CarNotFound(plate_number)
    return car
