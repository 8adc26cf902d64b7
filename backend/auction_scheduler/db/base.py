"""Declarative base shared by all models and Alembic's env.py."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
