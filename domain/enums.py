"""
Domain enumerations shared with the school backend.

These mirror the database enums of the school platform. The capability
registry reads its parameter constraints from ``get_enum_values`` so the
tool schemas always follow the values defined here.
"""

from enum import Enum
from typing import Dict, List, Type


class Role(Enum):
    """User roles."""
    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


class EnrollmentStatus(Enum):
    """Status of an enrollment period."""
    DRAFT = "draft"
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXTENDED = "extended"
    CLOSED = "closed"
    CANCELED = "canceled"
    ARCHIVED = "archived"


class CourseEnrollmentStatus(Enum):
    """Status of a student's enrollment in a course section."""
    ENLISTED = "enlisted"
    FINALIZED = "finalized"
    ENROLLED = "enrolled"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    DROPPED = "dropped"
    FAILED = "failed"


class BillStatus(Enum):
    """Payment status of a bill."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERPAID = "overpaid"


class PaymentScheme(Enum):
    """How a bill is split into payments."""
    FULL = "full"
    INSTALLMENT1 = "installment1"
    INSTALLMENT2 = "installment2"


class ContentType(Enum):
    """Kinds of LMS module content."""
    LESSON = "LESSON"
    ASSIGNMENT = "ASSIGNMENT"
    QUIZ = "QUIZ"
    DISCUSSION = "DISCUSSION"
    FILE = "FILE"
    URL = "URL"
    VIDEO = "VIDEO"


class ProgressStatus(Enum):
    """A student's progress on a piece of content."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


DOMAIN_ENUMS: Dict[str, Type[Enum]] = {
    "role": Role,
    "enrollment_status": EnrollmentStatus,
    "course_enrollment_status": CourseEnrollmentStatus,
    "bill_status": BillStatus,
    "payment_scheme": PaymentScheme,
    "content_type": ContentType,
    "progress_status": ProgressStatus,
    "sort_order": SortOrder,
}


def get_enum_values() -> Dict[str, List[str]]:
    """
    Current legal values for every domain enum.

    Returns:
        Mapping of enum key (e.g. "bill_status") to its values in
        declaration order
    """
    return {key: [member.value for member in enum_cls] for key, enum_cls in DOMAIN_ENUMS.items()}
