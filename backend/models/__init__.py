"""
Models package - SQLAlchemy models
"""
from models.database import db
from models.ref_state import RefState

__all__ = [
    'db',
    'RefState',
]
