"""Tests for the response envelope."""

from datetime import timezone
from decimal import Decimal

from pydantic import BaseModel

from api.base import current_request_id, error_response, ok, success_response


class Line(BaseModel):
    name: str
    total: Decimal


class TestSuccessResponse:

    def test_structure(self):
        resp = success_response({"foo": "bar"})

        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_explicit_request_id_wins(self):
        token = current_request_id.set("ctx-req-0001")
        try:
            assert success_response({}, request_id="req-1").meta.request_id == "req-1"
        finally:
            current_request_id.reset(token)

    def test_request_id_from_context(self):
        token = current_request_id.set("ctx-req-0001")
        try:
            assert success_response({}).meta.request_id == "ctx-req-0001"
        finally:
            current_request_id.reset(token)

    def test_request_id_generated_outside_a_request(self):
        first, second = success_response({}), success_response({})

        assert first.meta.request_id
        assert first.meta.request_id != second.meta.request_id


class TestOk:
    """Route helper that dumps models."""

    def test_model_dumped_as_json(self):
        body = ok(Line(name="Design", total=Decimal("220.00")))

        assert body["success"] is True
        assert body["data"] == {"name": "Design", "total": "220.00"}

    def test_list_of_models(self):
        body = ok([Line(name="A", total=Decimal("1")), Line(name="B", total=Decimal("2"))])

        assert [line["name"] for line in body["data"]] == ["A", "B"]

    def test_plain_dict_untouched(self):
        assert ok({"deleted": True})["data"] == {"deleted": True}


class TestErrorResponse:

    def test_structure(self):
        resp = error_response("INVOICE_ALREADY_PAID", "Invoice is already paid")

        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "INVOICE_ALREADY_PAID"
        assert resp.error.message == "Invoice is already paid"

    def test_details_included(self):
        resp = error_response("BUSINESS_REQUIRED", "Create a business", {"redirect_to": "/setup"})

        assert resp.error.details == {"redirect_to": "/setup"}

    def test_empty_details_omitted(self):
        assert error_response("ERR", "msg", {}).error.details is None
