"""
Unit Tests for the School API Client

Uses httpx.MockTransport in place of the backend.
"""

from unittest.mock import Mock

import httpx
import pytest

from clients.school_api_client import SchoolApiClient
from core.errors import DomainError


def make_client(handler, token="abc123"):
    return SchoolApiClient(
        base_url="http://backend.test/api",
        token=token,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Test paths, params and headers."""

    def test_bearer_token_and_path(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"id": "u-1", "email": "ana@mmdc.mcl.edu.ph"})

        with make_client(handler) as client:
            me = client.get_me()

        assert me["id"] == "u-1"
        assert seen["url"] == "http://backend.test/api/users/me"
        assert seen["auth"] == "Bearer abc123"

    def test_existing_bearer_prefix_is_kept(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        make_client(handler, token="Bearer xyz").get_me()
        assert seen["auth"] == "Bearer xyz"

    def test_empty_params_are_dropped(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": []})

        make_client(handler).find_bills(status="unpaid", scheme=None, page=2, user_id="u-1")

        assert seen["params"] == {"status": "unpaid", "sortOrder": "desc", "page": "2", "userId": "u-1"}

    def test_module_contents_path(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[])

        make_client(handler).find_module_contents("m-7", content_type="QUIZ")

        assert seen["path"] == "/api/modules/m-7/contents"
        assert seen["params"] == {"contentType": "QUIZ"}

    @pytest.mark.parametrize("call, record_id, expected", [
        ("find_user", "x?userId=u-2", b"/api/users/x%3FuserId%3Du-2"),
        ("find_bill", "../users/me", b"/api/billing/..%2Fusers%2Fme"),
        ("find_course", "c 1#top", b"/api/courses/c%201%23top"),
    ])
    def test_ids_are_one_encoded_segment(self, call, record_id, expected):
        seen = {}

        def handler(request):
            seen["raw_path"] = request.url.raw_path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={})

        getattr(make_client(handler), call)(record_id)

        assert seen["raw_path"] == expected
        assert seen["params"] == {}

    @pytest.mark.parametrize("record_id", ["", "..", " . "])
    def test_dot_and_empty_ids_are_rejected(self, record_id):
        handler = Mock(return_value=httpx.Response(200, json={}))

        with pytest.raises(DomainError) as exc:
            make_client(handler).find_module_contents(record_id)

        assert exc.value.status_code == 400
        handler.assert_not_called()


class TestErrors:
    """Test error mapping to DomainError."""

    @pytest.mark.parametrize("status,message", [
        (403, "the user is not allowed to see this information"),
        (404, "no matching record was found"),
        (418, "the school service returned an error"),
    ])
    def test_http_errors(self, status, message):
        client = make_client(lambda request: httpx.Response(status, text="internal detail"))

        with pytest.raises(DomainError) as exc_info:
            client.find_bill("b-1")

        assert exc_info.value.status_code == status
        assert exc_info.value.public_message == message
        assert "internal detail" not in exc_info.value.public_message

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(DomainError) as exc_info:
            make_client(handler).find_courses()
        assert exc_info.value.public_message == "the school service timed out"

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(DomainError) as exc_info:
            make_client(handler).find_active_enrollment_period()
        assert exc_info.value.public_message == "the school service could not be reached"

    def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(DomainError):
            client.find_my_modules()
