from flask_sqlalchemy import SQLAlchemy

# Shared SQLAlchemy handle, bound to the Flask app in app.py.
# Models only need its metadata, so the engine can run on any plain Session too.
db = SQLAlchemy()
