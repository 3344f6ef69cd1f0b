"""
School Data Tools

Function calling handlers for the school backend: users, courses,
enrollment, LMS modules and billing. Each handler takes the parsed
arguments sent by the model, validates them against the domain enums, and
returns the backend's JSON unchanged.

Handlers raise DomainError (from the client) or ValueError/KeyError for
bad arguments; the dispatcher turns both into text for the model.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Type

from clients.school_api_client import SchoolApiClient
from core.capabilities import ToolName
from domain import (
    BillStatus,
    ContentType,
    CourseEnrollmentStatus,
    EnrollmentStatus,
    PaymentScheme,
    ProgressStatus,
    Role,
    SortOrder,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


# ============================================================================
# ARGUMENT HELPERS
# ============================================================================

def required_str(args: Mapping[str, Any], name: str) -> str:
    value = args.get(name)
    if value is None or str(value).strip() == "":
        raise KeyError(f"Missing required argument '{name}'")
    return str(value).strip()


def optional_str(args: Mapping[str, Any], name: str) -> Optional[str]:
    value = args.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def int_arg(args: Mapping[str, Any], name: str, default: int, minimum: int = 1) -> int:
    value = args.get(name, default)
    if value is None:
        return default
    number = int(value)
    if number < minimum:
        raise ValueError(f"Argument '{name}' must be at least {minimum}, got {number}")
    return number


def enum_arg(args: Mapping[str, Any], name: str, enum_cls: Type[Enum], default: Optional[str] = None) -> Optional[str]:
    """Validate an enumerated argument; raises ValueError on illegal values."""
    value = optional_str(args, name)
    if value is None:
        return default
    return enum_cls(value).value


# ============================================================================
# HANDLER FACTORY
# ============================================================================

def build_school_handlers(
    client: SchoolApiClient,
    user_context: Optional[Mapping[str, Any]] = None,
) -> Dict[ToolName, Handler]:
    """
    Bind the school backend operations to tool names.

    Args:
        client: Backend client acting for the current user
        user_context: Snapshot of the current user (used to scope
            student billing to the student's own records)

    Returns:
        Mapping of ToolName to handler
    """
    context = dict(user_context or {})
    is_student = context.get("role") == Role.STUDENT.value
    own_user_id = context.get("id") if is_student else None

    def users_count_all(args):
        count = client.count_users(
            role=enum_arg(args, "role", Role),
            search=optional_str(args, "search"),
        )
        if isinstance(count, int):
            return {"count": count}
        return count

    def users_find_one(args):
        return client.find_user(required_str(args, "id"))

    def courses_find_all(args):
        return client.find_courses(
            search=optional_str(args, "search"),
            page=int_arg(args, "page", 1),
            limit=int_arg(args, "limit", 10),
        )

    def courses_find_one(args):
        return client.find_course(required_str(args, "id"))

    def enrollment_find_periods(args):
        return client.find_enrollment_periods(
            status=enum_arg(args, "status", EnrollmentStatus),
            page=int_arg(args, "page", 1),
        )

    def enrollment_active_period(args):
        return client.find_active_enrollment_period()

    def enrollment_my_courses(args):
        return client.find_my_courses(status=enum_arg(args, "status", CourseEnrollmentStatus))

    def lms_my_modules(args):
        return client.find_my_modules(
            search=optional_str(args, "search"),
            page=int_arg(args, "page", 1),
        )

    def lms_module_contents(args):
        return client.find_module_contents(
            module_id=required_str(args, "moduleId"),
            content_type=enum_arg(args, "contentType", ContentType),
            progress=enum_arg(args, "progress", ProgressStatus),
        )

    def billing_find_all(args):
        return client.find_bills(
            status=enum_arg(args, "status", BillStatus),
            scheme=enum_arg(args, "scheme", PaymentScheme),
            sort_order=enum_arg(args, "sortOrder", SortOrder, default=SortOrder.DESC.value),
            page=int_arg(args, "page", 1),
            user_id=own_user_id,
        )

    def billing_find_one(args):
        return client.find_bill(required_str(args, "id"))

    return {
        # Users
        ToolName.USERS_COUNT_ALL: users_count_all,
        ToolName.USERS_FIND_ONE: users_find_one,

        # Courses
        ToolName.COURSES_FIND_ALL: courses_find_all,
        ToolName.COURSES_FIND_ONE: courses_find_one,

        # Enrollment
        ToolName.ENROLLMENT_FIND_PERIODS: enrollment_find_periods,
        ToolName.ENROLLMENT_ACTIVE_PERIOD: enrollment_active_period,
        ToolName.ENROLLMENT_MY_COURSES: enrollment_my_courses,

        # LMS
        ToolName.LMS_MY_MODULES: lms_my_modules,
        ToolName.LMS_MODULE_CONTENTS: lms_module_contents,

        # Billing
        ToolName.BILLING_FIND_ALL: billing_find_all,
        ToolName.BILLING_FIND_ONE: billing_find_one,
    }
