"""
School API Client

Thin HTTP client for the read endpoints of the school backend. Every call
is made on behalf of the current user (bearer token), so the backend
applies its own authorization as well.

Failures are raised as DomainError with a message that is safe to show
to the model; details only go to the log.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from config import SCHOOL_API_BASE_URL, SCHOOL_API_TOKEN, TIMEOUT
from core.errors import DomainError

logger = logging.getLogger(__name__)

PUBLIC_STATUS_MESSAGES = {
    400: "the request had invalid parameters",
    401: "the user is not signed in",
    403: "the user is not allowed to see this information",
    404: "no matching record was found",
    409: "the record is in a conflicting state",
    429: "the service is busy, please try again later",
}


def path_segment(value: Any) -> str:
    """
    Encode a record id as exactly one URL path segment.

    Raises:
        DomainError: For empty ids and the dot segments "." and ".."
    """
    text = str(value).strip()
    if text in ("", ".", ".."):
        raise DomainError(f"Invalid record id {value!r}", public_message="the record id is not valid", status_code=400)
    return quote(text, safe="")


class SchoolApiClient:
    """
    Read-only client for users, courses, enrollment, LMS and billing.

    Args:
        base_url: Backend API root
        token: Bearer token of the user (or a service token)
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str = SCHOOL_API_BASE_URL,
        token: Optional[str] = SCHOOL_API_TOKEN,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = token if token.lower().startswith("bearer ") else f"Bearer {token}"

        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SchoolApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a JSON resource.

        Raises:
            DomainError: On transport failures and non-2xx responses
        """
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        try:
            response = self._client.get(path, params=clean)
        except httpx.TimeoutException as e:
            raise DomainError(f"GET {path} timed out: {e}", public_message="the school service timed out") from e
        except httpx.HTTPError as e:
            raise DomainError(f"GET {path} failed: {e}", public_message="the school service could not be reached") from e

        if response.is_error:
            logger.warning(f"⚠️  GET {path} returned {response.status_code}")
            raise DomainError(
                f"GET {path} returned {response.status_code}: {response.text[:200]}",
                public_message=PUBLIC_STATUS_MESSAGES.get(
                    response.status_code, "the school service returned an error"
                ),
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DomainError(f"GET {path} returned invalid JSON", public_message="the school service returned unreadable data") from e

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def count_users(self, role: Optional[str] = None, search: Optional[str] = None) -> Any:
        return self.get("/users/count", {"role": role, "search": search})

    def find_user(self, user_id: str) -> Any:
        return self.get(f"/users/{path_segment(user_id)}")

    def get_me(self) -> Any:
        return self.get("/users/me")

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def find_courses(self, search: Optional[str] = None, page: int = 1, limit: int = 10) -> Any:
        return self.get("/courses", {"search": search, "page": page, "limit": limit})

    def find_course(self, course_id: str) -> Any:
        return self.get(f"/courses/{path_segment(course_id)}")

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    def find_enrollment_periods(self, status: Optional[str] = None, page: int = 1) -> Any:
        return self.get("/enrollments", {"status": status, "page": page})

    def find_active_enrollment_period(self) -> Any:
        return self.get("/enrollments/active")

    def find_my_courses(self, status: Optional[str] = None) -> Any:
        return self.get("/enrollment/student/courses", {"status": status})

    # ------------------------------------------------------------------
    # LMS
    # ------------------------------------------------------------------

    def find_my_modules(self, search: Optional[str] = None, page: int = 1) -> Any:
        return self.get("/modules/my", {"search": search, "page": page})

    def find_module_contents(
        self,
        module_id: str,
        content_type: Optional[str] = None,
        progress: Optional[str] = None,
    ) -> Any:
        return self.get(
            f"/modules/{path_segment(module_id)}/contents",
            {"contentType": content_type, "progress": progress},
        )

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    def find_bills(
        self,
        status: Optional[str] = None,
        scheme: Optional[str] = None,
        sort_order: str = "desc",
        page: int = 1,
        user_id: Optional[str] = None,
    ) -> Any:
        return self.get(
            "/billing",
            {"status": status, "scheme": scheme, "sortOrder": sort_order, "page": page, "userId": user_id},
        )

    def find_bill(self, bill_id: str) -> Any:
        return self.get(f"/billing/{path_segment(bill_id)}")
