# app/models/project.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Date

from app.models.base import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    project_name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(32), nullable=False, default="Planning")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
