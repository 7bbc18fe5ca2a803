"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, and database configuration.
"""

from visaforge.db.database import Base, engine, SessionLocal, get_db, init_db
from visaforge.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'models',
    'schemas'
]
