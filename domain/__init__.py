"""
Domain Enumerations Module

Enum values shared with the school backend (roles, enrollment, billing,
LMS content). The capability registry derives its parameter constraints
from ``get_enum_values`` instead of keeping its own copies.
"""

from .enums import (
    Role,
    EnrollmentStatus,
    CourseEnrollmentStatus,
    BillStatus,
    PaymentScheme,
    ContentType,
    ProgressStatus,
    SortOrder,
    DOMAIN_ENUMS,
    get_enum_values,
)

__all__ = [
    "Role",
    "EnrollmentStatus",
    "CourseEnrollmentStatus",
    "BillStatus",
    "PaymentScheme",
    "ContentType",
    "ProgressStatus",
    "SortOrder",
    "DOMAIN_ENUMS",
    "get_enum_values",
]
