from app.core.models.tenant import Tenant
from app.core.models.academic_session import AcademicSession
from app.core.models.class_model import SchoolClass
from app.core.models.student import Student
from app.core.models.teacher import Teacher

__all__ = [
    "AcademicSession",
    "SchoolClass",
    "Student",
    "Teacher",
    "Tenant",
]
