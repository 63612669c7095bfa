from datetime import date, datetime, timedelta

import pytest

from school_inventory import crud, lifecycle, models, schemas
from school_inventory.exceptions import ItemOnLoanError


def _titles(items):
    return [item.title for item in items]


class TestSearch:

    def test_case_insensitive_substring(self, db, make_item):
        make_item("Microscope", 1)
        make_item("Telescope", 1)
        make_item("Globe", 1)

        assert _titles(crud.search_inventory_items(db, "SCOPE")) == ["Microscope", "Telescope"]
        assert _titles(crud.search_inventory_items(db, "micro")) == ["Microscope"]
        assert crud.search_inventory_items(db, "chalk") == []

    def test_wildcards_are_literal(self, db, make_item):
        make_item("50% off sign", 1)
        make_item("500 pens", 1)
        make_item("a_b cable", 1)
        make_item("axb cable", 1)

        assert _titles(crud.search_inventory_items(db, "0%")) == ["50% off sign"]
        assert _titles(crud.search_inventory_items(db, "a_b")) == ["a_b cable"]

    def test_pagination(self, db, make_item):
        for n in range(5):
            make_item(f"Book {n}", 1)

        assert _titles(crud.search_inventory_items(db, "book", skip=1, limit=2)) == ["Book 1", "Book 2"]
        assert _titles(crud.get_inventory_items(db, skip=3)) == ["Book 3", "Book 4"]


class TestCatalog:

    def test_create_writes_audit_entry(self, db, make_item):
        item = make_item("Whiteboard", 4)

        assert item.date_added == date.today()
        assert item.version == 1
        assert [e.message for e in crud.get_audit_entries(db)] == ["Added to catalog: Whiteboard"]

    def test_update_keeps_date_added(self, db, make_item):
        item = make_item("Whiteboard", 4)
        item.date_added = date(2020, 9, 1)
        db.commit()

        updated = crud.update_inventory_item(db, item.id, schemas.InventoryItemUpdate(quantity=9))

        assert updated.title == "Whiteboard"
        assert updated.quantity == 9
        assert updated.date_added == date(2020, 9, 1)

    def test_update_missing(self, db):
        assert crud.update_inventory_item(db, 1, schemas.InventoryItemUpdate(title="Nothing")) is None

    def test_delete_detaches_requests(self, db, make_item, student):
        item = make_item("Whiteboard", 4)
        item_id = item.id
        request = lifecycle.create_request(db, item_id, student)

        assert crud.delete_inventory_item(db, item_id) is True

        assert crud.get_inventory_item(db, item_id) is None
        db.refresh(request)
        assert request.item_id is None
        assert request.status == models.RequestStatus.PENDING
        assert crud.get_audit_entries(db)[0].message == "Removed from catalog: Whiteboard"

    def test_delete_refused_while_on_loan(self, db, make_item, admin, student):
        item = make_item("Whiteboard", 4)
        item_id = item.id
        request = lifecycle.create_request(db, item_id, student)
        lifecycle.approve_request(db, request.id, admin)
        audit_before = [e.message for e in crud.get_audit_entries(db)]

        with pytest.raises(ItemOnLoanError) as exc_info:
            crud.delete_inventory_item(db, item_id)

        assert exc_info.value.code == "ITEM_ON_LOAN"
        assert exc_info.value.loans == 1
        assert crud.get_inventory_item(db, item_id) is not None
        db.refresh(request)
        assert request.item_id == item_id
        assert [e.message for e in crud.get_audit_entries(db)] == audit_before

        # Once the loan is back the item can go
        lifecycle.return_request(db, request.id, admin)
        assert crud.delete_inventory_item(db, item_id) is True
        db.refresh(request)
        assert request.item_id is None
        assert request.status == models.RequestStatus.RETURNED

    def test_delete_missing(self, db):
        assert crud.delete_inventory_item(db, 42) is False


class TestAuditLog:

    def test_ordered_by_timestamp_not_insertion(self, db):
        now = datetime.utcnow()
        crud.create_audit_entry(db, "middle", timestamp=now - timedelta(minutes=5))
        crud.create_audit_entry(db, "newest", timestamp=now)
        crud.create_audit_entry(db, "oldest", timestamp=now - timedelta(days=1))
        db.commit()

        assert [e.message for e in crud.get_audit_entries(db)] == ["newest", "middle", "oldest"]

    def test_entry_is_not_committed_by_itself(self, db):
        crud.create_audit_entry(db, "discarded")
        db.rollback()

        assert crud.get_audit_entries(db) == []


class TestRequests:

    def test_by_status_oldest_first(self, db, make_item, make_user):
        item = make_item("Globe", 3)
        first = lifecycle.create_request(db, item.id, make_user("First"))
        second = lifecycle.create_request(db, item.id, make_user("Second"))

        pending = crud.get_item_requests_by_status(db, models.RequestStatus.PENDING)

        assert [r.id for r in pending] == [first.id, second.id]
        assert crud.get_item_requests_by_status(db, models.RequestStatus.APPROVED) == []

    def test_get_missing(self, db):
        assert crud.get_item_request(db, 1) is None
