"""Tests for BusinessService."""

from decimal import Decimal

import pytest

from core.errors import ConflictError, NotFoundError
from core.models import (
    BusinessCreate, BusinessUpdate, ClientCreate, InvoiceCreate, TaxMode, TotalTax,
)


class TestBusinessCreate:
    """Tests for BusinessService.create."""

    def test_first_business_is_default(self, workspace):
        _, business = workspace

        assert business.is_default is True
        assert business.sequence == 1

    def test_later_business_not_default(self, services, workspace):
        ws, _ = workspace

        second = services["business"].create(ws.id, BusinessCreate(name="Side Gig"))

        assert second.is_default is False
        assert second.sequence == 2

    def test_tax_policy_stored_as_columns(self, services, workspace):
        ws, _ = workspace

        business = services["business"].create(ws.id, BusinessCreate(
            name="EU Branch", default_tax=TotalTax(name="VAT", percentage=Decimal("21")),
        ))

        assert business.default_tax_mode == TaxMode.BY_TOTAL
        assert business.default_tax_policy == TotalTax(name="VAT", percentage=Decimal("21"))


class TestBusinessRead:
    """Tests for get and list."""

    def test_list_default_first(self, services, workspace):
        ws, _ = workspace
        services["business"].create(ws.id, BusinessCreate(name="Aardvark Labs"))

        names = [b.name for b in services["business"].list(ws.id)]

        assert names == ["Acme Studio", "Aardvark Labs"]

    def test_list_search(self, services, workspace):
        ws, _ = workspace
        services["business"].create(ws.id, BusinessCreate(name="Side Gig", tax_id="SG-99"))

        assert [b.name for b in services["business"].list(ws.id, "sg-9")] == ["Side Gig"]

    def test_other_workspace_not_found(self, services, workspace, workspace_b):
        _, business = workspace
        ws_b, _ = workspace_b

        with pytest.raises(NotFoundError):
            services["business"].get_by_id(ws_b.id, business.id)

    def test_sequence_lookup_is_per_workspace(self, services, workspace, workspace_b):
        """Both workspaces have a business 1; each sees its own."""
        ws, business = workspace
        ws_b, business_b = workspace_b

        assert services["business"].get(ws.id, 1).id == business.id
        assert services["business"].get(ws_b.id, 1).id == business_b.id


class TestBusinessUpdate:
    """Tests for update and set_default."""

    def test_update_fields(self, services, workspace):
        ws, business = workspace

        updated = services["business"].update(ws.id, business.sequence, BusinessUpdate(
            phone="555-0199", default_notes="Thank you",
        ))

        assert updated.phone == "555-0199"
        assert updated.default_notes == "Thank you"
        assert updated.name == "Acme Studio"

    def test_null_name_ignored(self, services, workspace):
        ws, business = workspace

        updated = services["business"].update(ws.id, business.sequence, BusinessUpdate(name=None))

        assert updated.name == "Acme Studio"

    def test_set_default_moves_flag(self, services, workspace):
        ws, business = workspace
        second = services["business"].create(ws.id, BusinessCreate(name="Side Gig"))

        services["business"].set_default(ws.id, second.sequence)

        assert services["business"].get(ws.id, second.sequence).is_default is True
        assert services["business"].get(ws.id, business.sequence).is_default is False


class TestBusinessDelete:
    """Tests for BusinessService.delete."""

    def test_delete_unused(self, services, workspace):
        ws, _ = workspace
        second = services["business"].create(ws.id, BusinessCreate(name="Side Gig"))

        services["business"].delete(ws.id, second.sequence)

        with pytest.raises(NotFoundError):
            services["business"].get(ws.id, second.sequence)

    def test_business_with_invoices_not_deletable(self, services, workspace):
        ws, business = workspace
        client = services["client"].create(ws.id, ClientCreate(name="Jane Doe"))
        services["invoice"].create(ws.id, InvoiceCreate(business_id=business.id, client_id=client.id))

        with pytest.raises(ConflictError) as exc_info:
            services["business"].delete(ws.id, business.sequence)

        assert exc_info.value.code == "BUSINESS_IN_USE"

    def test_deleting_last_business_closes_gate(self, services, workspace):
        ws, business = workspace

        services["business"].delete(ws.id, business.sequence)

        assert services["workspace"].has_business(ws.id) is False
