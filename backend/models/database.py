"""
Database instance shared by every model and service.

Bound to the Flask app in create_app(); scripts and tests get a session
through the app context (db.session).
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
