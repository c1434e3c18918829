# app/models/person.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from app.models.base import Base


class Person(Base):
    """
    Minimal personnel record.

    Personnel management lives elsewhere; allocations and availability
    windows only reference people by id and read name / role for display.
    """

    __tablename__ = "personnel"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    role_title = Column(String(255), nullable=True)
    experience_level = Column(String(32), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
