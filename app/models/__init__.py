# app/models/__init__.py
from app.models.base import Base  # noqa: F401

from app.models.person import Person  # noqa: F401
from app.models.project import Project  # noqa: F401
from app.models.availability_window import AvailabilityWindow  # noqa: F401
from app.models.allocation import Allocation  # noqa: F401
