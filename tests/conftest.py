import os
import tempfile

import pytest

# The Flask app reads its settings at import time, so configure it first
_db_dir = tempfile.mkdtemp(prefix='smartpark-tests-')
os.environ['SMARTPARK_DATABASE_URI'] = 'sqlite:///' + os.path.join(_db_dir, 'app.db')
os.environ['SMARTPARK_REDIS_URL'] = ''
os.environ['SMARTPARK_MAIL_SUPPRESS_SEND'] = '1'
os.environ['SMARTPARK_CELERY_BROKER_URL'] = 'memory://'
os.environ['SMARTPARK_CELERY_RESULT_BACKEND'] = 'cache+memory://'

from flask_jwt_extended import create_access_token
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from smartpark.database import db
from smartpark.models import ParkingSlot, SlotStatus, User


@pytest.fixture
def session_factory(tmp_path):
    """Plain SQLAlchemy sessions on a private SQLite file, no Flask involved."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'engine.db'}",
        connect_args={'timeout': 30},
    )
    db.metadata.create_all(engine)

    factory = sessionmaker(bind=engine)
    with factory() as setup:
        setup.add(User(id=1, username='clerk', email='clerk@example.com', role='attendant'))
        setup.add_all(ParkingSlot(slot_number=n, status=SlotStatus.AVAILABLE) for n in range(1, 6))
        setup.commit()

    yield factory
    engine.dispose()


@pytest.fixture
def dbs(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def flask_app():
    from smartpark.app import app

    app.config['TESTING'] = True
    with app.app_context():
        db.drop_all()
        db.create_all()
        for n in range(1, 6):
            db.session.add(ParkingSlot(slot_number=n, status=SlotStatus.AVAILABLE))

        admin = User(username='admin', email='admin@example.com', role='admin')
        admin.set_password('adminpassword')
        clerk = User(username='clerk', role='attendant')
        clerk.set_password('clerkpassword')
        db.session.add_all([admin, clerk])
        db.session.commit()

        yield app
        db.session.remove()


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


def _headers_for(username):
    user = User.query.filter_by(username=username).first()
    return {'Authorization': f'Bearer {create_access_token(identity=str(user.id))}'}


@pytest.fixture
def auth_headers(flask_app):
    return _headers_for('clerk')


@pytest.fixture
def admin_headers(flask_app):
    return _headers_for('admin')
