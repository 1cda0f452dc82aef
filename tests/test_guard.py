import copy
import logging

import pytest

from practice_api.isolation import (
    BulkBatch,
    IsolationGuard,
    IsolationViolation,
    OperationKind,
    Pipeline,
    PointFilter,
    SkipRegistry,
)
from practice_api.db.models import Invoice


@pytest.fixture
def guard():
    return IsolationGuard(SkipRegistry())


def test_unscoped_read_is_blocked(guard):
    with pytest.raises(IsolationViolation) as excinfo:
        guard.check(Invoice, PointFilter({"status": "paid"}), method="find")

    exc = excinfo.value
    assert exc.entity == "Invoice"
    assert exc.operation == "read"
    assert exc.method == "find"
    assert "Invoice" in str(exc)
    assert "read" in str(exc)
    assert "find_without_scope()" in str(exc)


def test_scoped_read_passes(guard):
    guard.check("Invoice", PointFilter({"status": "paid", "firm_id": "F1"}), method="find")


def test_unscoped_insert_names_the_document(guard):
    with pytest.raises(IsolationViolation, match="write document") as excinfo:
        guard.check("Case", PointFilter({"title": "x"}, OperationKind.WRITE), method="insert_one")

    assert excinfo.value.operation == "write"


def test_unscoped_pipeline_is_blocked(guard):
    with pytest.raises(IsolationViolation, match="aggregation") as excinfo:
        guard.check("Invoice", Pipeline([{"$group": {"_id": "$status"}}]), method="aggregate")

    assert excinfo.value.operation == "aggregation"


def test_scoped_pipeline_passes(guard):
    guard.check(
        "Invoice",
        Pipeline([{"$match": {"firm_id": "F1"}}, {"$group": {"_id": "$status"}}]),
        method="aggregate",
    )


def test_bulk_violation_carries_offending_indices(guard):
    batch = BulkBatch([
        {"delete_one": {"filter": {"firm_id": "F1", "id": "a"}}},
        {"delete_one": {"filter": {"id": "b"}}},
        {"update_many": {"filter": {"status": "x"}, "update": {"$set": {"status": "y"}}}},
    ])

    with pytest.raises(IsolationViolation) as excinfo:
        guard.check("Lead", batch, method="bulk_write")

    exc = excinfo.value
    assert exc.operation == "bulk"
    assert exc.offending_indices == (1, 2)
    assert exc.issues == (
        "sub-operation 1 (delete_one) missing tenant scope",
        "sub-operation 2 (update_many) missing tenant scope",
    )


@pytest.mark.parametrize("entity", ["User", "Session", "Firm"])
def test_skip_listed_entities_accept_anything(guard, entity):
    guard.check(entity, PointFilter({}), method="find")
    guard.check(entity, PointFilter(None, OperationKind.WRITE), method="delete_many")
    guard.check(entity, Pipeline([{"$group": {"_id": None}}]), method="aggregate")
    guard.check(entity, BulkBatch([{"delete_many": {"filter": {}}}]), method="bulk_write")


def test_extra_skip_entities_are_honoured():
    guard = IsolationGuard(SkipRegistry({"AuditLog"}))

    guard.check("AuditLog", PointFilter({}), method="find")
    with pytest.raises(IsolationViolation):
        guard.check("User", PointFilter({}), method="find")


def test_bypass_passes_and_is_logged(guard, caplog):
    with caplog.at_level(logging.INFO, logger="practice_api.isolation.guard"):
        guard.check("Invoice", PointFilter({}), method="find", bypass=True)
        guard.check("Invoice", Pipeline([{"$group": {"_id": None}}]), method="aggregate", bypass=True)

    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert "Tenant isolation bypassed: Invoice.find (read)" in messages
    assert "Tenant isolation bypassed: Invoice.aggregate (aggregation)" in messages


@pytest.mark.parametrize("bypass", ["yes", 1, None])
def test_bypass_must_be_a_bool(guard, bypass):
    with pytest.raises(TypeError):
        guard.check("Invoice", PointFilter({"firm_id": "F1"}), method="find", bypass=bypass)


def test_violation_is_logged_as_warning(guard, caplog):
    with caplog.at_level(logging.WARNING, logger="practice_api.isolation.guard"):
        with pytest.raises(IsolationViolation):
            guard.check("Invoice", PointFilter({}), method="count")

    assert any("Invoice.count() blocked" in r.getMessage() for r in caplog.records)


def test_guard_does_not_mutate_inputs(guard):
    filter = {"status": "paid", "firm_id": "F1", "$or": [{"total": {"$gt": 10}}]}
    pipeline = [{"$match": {"firm_id": "F1"}}, {"$group": {"_id": "$status"}}]
    batch = [
        {"insert_one": {"document": {"name": "x", "firm_id": "F1"}}},
        {"update_one": {"filter": {"id": "1"}, "update": {"$set": {"status": "y"}}}},
    ]
    before = copy.deepcopy((filter, pipeline, batch))

    guard.check("Invoice", PointFilter(filter), method="find")
    guard.check("Invoice", Pipeline(pipeline), method="aggregate")
    with pytest.raises(IsolationViolation):
        guard.check("Lead", BulkBatch(batch), method="bulk_write")

    assert (filter, pipeline, batch) == before


def test_unknown_operation_shape_is_rejected(guard):
    with pytest.raises(TypeError):
        guard.check("Invoice", {"firm_id": "F1"}, method="find")
