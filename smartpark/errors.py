"""
Typed failures raised by the parking engine and its collaborators.

Every error carries the HTTP status the web layer answers with, so app.py
needs a single error handler instead of per-route status juggling.
"""


class ParkingError(Exception):
    status_code = 500
    default_message = 'Parking operation failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'message': self.message, 'error': type(self).__name__}


class NotFound(ParkingError):
    status_code = 404
    default_message = 'Not found'


class SlotNotFound(NotFound):
    def __init__(self, slot_number):
        super().__init__(f'Parking slot {slot_number} not found')
        self.slot_number = slot_number


class SessionNotFound(NotFound):
    def __init__(self, session_id):
        super().__init__(f'Parking session {session_id} not found')
        self.session_id = session_id


class CarNotFound(NotFound):
    def __init__(self, plate_number):
        super().__init__(f'Car {plate_number} not found')
        self.plate_number = plate_number


class PaymentNotFound(NotFound):
    def __init__(self, payment_id):
        super().__init__(f'Payment {payment_id} not found')
        self.payment_id = payment_id


class Conflict(ParkingError):
    status_code = 409
    default_message = 'Conflict'


class SlotOccupied(Conflict):
    def __init__(self, slot_number):
        super().__init__(f'Parking slot {slot_number} is already occupied')
        self.slot_number = slot_number


class SessionAlreadyClosed(Conflict):
    def __init__(self, session_id):
        super().__init__(f'Parking session {session_id} is already closed')
        self.session_id = session_id


class CarAlreadyParked(Conflict):
    def __init__(self, plate_number):
        super().__init__(f'Car {plate_number} already has an open parking session')
        self.plate_number = plate_number


class SlotInUse(Conflict):
    def __init__(self, slot_number, reason):
        super().__init__(f'Cannot delete parking slot {slot_number}: {reason}')
        self.slot_number = slot_number


class ValidationError(ParkingError):
    status_code = 400
    default_message = 'Validation Error'


class Unauthorized(ParkingError):
    status_code = 401
    default_message = 'Not authenticated'


class StoreError(ParkingError):
    """Persistence failure. Nothing was written, so the caller may retry."""
    status_code = 503
    default_message = 'Storage temporarily unavailable'
