# create_admin.py
# Bootstraps a fresh database: tables, the admin account and the initial slots.
import logging
import os

from smartpark.app import app, db
from smartpark.models import User
from smartpark.registry import seed_slots

logger = logging.getLogger(__name__)


def bootstrap(username, email, password, initial_slots):
    db.create_all()

    # check if admin user already exists
    admin = User.query.filter_by(username=username).first()
    if not admin:
        admin = User(username=username, email=email, role='admin')
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        logger.info("Admin user '%s' created", username)
    else:
        logger.info("Admin user '%s' already exists", username)

    added = seed_slots(db.session, initial_slots)
    return admin, added


def main():
    with app.app_context():
        bootstrap(
            os.getenv('SMARTPARK_ADMIN_USERNAME', 'admin'),
            os.getenv('SMARTPARK_ADMIN_EMAIL', 'admin@example.com'),
            os.getenv('SMARTPARK_ADMIN_PASSWORD', 'adminpassword'),
            int(os.getenv('SMARTPARK_INITIAL_SLOTS', '20')),
        )


if __name__ == '__main__':
    main()
