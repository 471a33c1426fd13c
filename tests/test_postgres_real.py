"""SQL store tests against a throwaway SQLite file."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.database.postgres_real import PostgresDB, _normalize_connection_string
from src.insurance.errors import DuplicateRequestError, InvalidTransitionError, RequestNotFoundError
from src.insurance.states import RequestStatus


@pytest.fixture
def sql_db(tmp_path):
    db = PostgresDB(f"sqlite:///{tmp_path / 'insurance.db'}")
    db.create_tables()
    return db


def _data(user_id="919876543210", **overrides):
    data = {
        "user_id": user_id,
        "timestamp": datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc),
        "item_name": "Cashew Nuts W320",
        "quantity": 45,
        "vehicle_no": "KA01AB1234",
        "rate": Decimal("98.50"),
        "consent": True,
        "premium_amount": Decimal("8.87"),
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  postgres://u:p@h/db ", "postgresql://u:p@h/db"),
        ("psql 'postgresql://u:p@h/db'", "postgresql://u:p@h/db"),
        ('"sqlite:///x.db"', "sqlite:///x.db"),
    ],
)
def test_normalize_connection_string(raw, expected):
    assert _normalize_connection_string(raw) == expected


def test_insert_and_fetch(sql_db):
    created = sql_db.insert_request(_data())

    assert created.status == RequestStatus.PENDING_VERIFICATION.value
    fetched = sql_db.get_request(created.id)
    assert fetched.user_id == "919876543210"
    assert fetched.premium_amount == Decimal("8.87")
    assert sql_db.get_request_by_user_id("919876543210").id == created.id
    assert sql_db.get_request("nope") is None


def test_unique_index_rejects_duplicate_user(sql_db):
    first = sql_db.insert_request(_data())

    with pytest.raises(DuplicateRequestError) as exc:
        sql_db.insert_request(_data(vehicle_no="MH12XY9999"))

    assert exc.value.request_id == first.id
    assert exc.value.status == RequestStatus.PENDING_VERIFICATION.value
    rows, total = sql_db.list_requests()
    assert total == 1


def test_transition_is_conditional(sql_db):
    req = sql_db.insert_request(_data())
    pending = RequestStatus.PENDING_VERIFICATION.value

    approved = sql_db.transition(req.id, pending, {"status": RequestStatus.APPROVED.value, "invoice_number": "INV1"})
    assert approved.status == RequestStatus.APPROVED.value
    assert approved.invoice_number == "INV1"

    with pytest.raises(InvalidTransitionError) as exc:
        sql_db.transition(req.id, pending, {"status": RequestStatus.REJECTED.value})
    assert exc.value.current_status == RequestStatus.APPROVED.value
    assert sql_db.get_request(req.id).status == RequestStatus.APPROVED.value

    with pytest.raises(RequestNotFoundError):
        sql_db.transition("missing", pending, {"status": RequestStatus.APPROVED.value})


def test_update_request_never_changes_status(sql_db):
    req = sql_db.insert_request(_data())

    updated = sql_db.update_request(req.id, {"invoice_pdf_url": "http://x/invoices/a.pdf", "status": "APPROVED"})

    assert updated.invoice_pdf_url == "http://x/invoices/a.pdf"
    assert updated.status == RequestStatus.PENDING_VERIFICATION.value
    assert sql_db.update_request("missing", {"admin_notes": "x"}) is None


def test_list_requests_filters_and_paginates(sql_db):
    ids = [sql_db.insert_request(_data(user_id=f"91000000000{i}")).id for i in range(3)]
    sql_db.transition(ids[0], RequestStatus.PENDING_VERIFICATION.value, {"status": RequestStatus.REJECTED.value})

    rows, total = sql_db.list_requests(limit=2)
    assert total == 3
    assert len(rows) == 2

    rows, total = sql_db.list_requests(status=RequestStatus.REJECTED.value)
    assert total == 1
    assert rows[0].id == ids[0]

    assert {r.id for r in sql_db.list_pending()} == set(ids[1:])


def test_admin_actions_and_premium_maintenance(sql_db):
    req = sql_db.insert_request(_data())
    sql_db.add_admin_action(req.id, "APPROVED", "ok")

    [action] = sql_db.list_admin_actions(req.id)
    assert action.action == "APPROVED"
    assert action.notes == "ok"

    sql_db.set_premium(req.id, Decimal("1.23"))
    assert [r.premium_amount for r in sql_db.iter_all_requests()] == [Decimal("1.23")]


def _insert_concurrently(store, workers=8):
    start = threading.Barrier(workers)

    def insert(i):
        start.wait()
        try:
            return store.insert_request(_data(vehicle_no=f"KA01AB{i:04d}"))
        except DuplicateRequestError as e:
            return e

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(insert, range(workers)))


@pytest.mark.parametrize("store_fixture", ["db", "sql_db"])
def test_concurrent_inserts_for_one_user_keep_a_single_row(request, store_fixture):
    store = request.getfixturevalue(store_fixture)

    results = _insert_concurrently(store)

    created = [r for r in results if not isinstance(r, DuplicateRequestError)]
    duplicates = [r for r in results if isinstance(r, DuplicateRequestError)]
    assert len(created) == 1
    assert len(duplicates) == 7
    assert {d.request_id for d in duplicates} == {created[0].id}
    rows, total = store.list_requests()
    assert total == 1
    assert rows[0].id == created[0].id
