# app/models/availability_window.py
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import relationship

from app.models.base import Base


class AvailabilityWindow(Base):
    """
    Share of a person's time that is usable at all between two dates
    (inclusive), independent of any project.

    Example: "at 50% during parental leave ramp-up, Mar 1 – Mar 31"
    turns into one row with availability_percentage=50.

    Windows of the same person never overlap.
    """

    __tablename__ = "personnel_availability"
    __table_args__ = (
        Index("idx_availability_person_dates", "person_id", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    person_id = Column(
        Integer,
        ForeignKey("personnel.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    availability_percentage = Column(Integer, nullable=False, default=100)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    person = relationship("Person", backref="availability_windows")
