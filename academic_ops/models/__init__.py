"""Import all models here, needed for Alembic migrations and metadata.create_all."""
from .base import Base

from .branch import Branch, User, Student
from .academic_year import AcademicYear
from .class_model import ClassModel
from .timetable import TimetableSlot
from .attendance import AttendanceRecord
