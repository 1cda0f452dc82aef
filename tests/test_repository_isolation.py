"""Tenant isolation through guarded repositories against a real database."""
import pytest

from practice_api.db.models import Case, Invoice, Lead, Session, User
from practice_api.isolation import InvalidScopeArgument, IsolationViolation, TenantScope, UnregisteredEntityError
from practice_api.repositories import GuardedRepository, RepositoryFactory
from practice_api.storage import FilterError

from tests.conftest import F1, F2, L1


@pytest.mark.asyncio
async def test_unscoped_find_is_blocked(repos):
    with pytest.raises(IsolationViolation) as excinfo:
        await repos[Invoice].find({"status": "paid"})

    assert excinfo.value.entity == "Invoice"
    assert excinfo.value.operation == "read"


@pytest.mark.asyncio
async def test_scoped_find_returns_only_that_tenant(repos):
    invoices = await repos[Invoice].find({"status": "paid", "firm_id": F1})

    assert [i.id for i in invoices] == ["123"]
    assert all(i.firm_id == F1 for i in invoices)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda r: r.find_one({"status": "paid"}),
        lambda r: r.count({}),
        lambda r: r.count(None),
        lambda r: r.update_one({"id": "123"}, {"$set": {"status": "void"}}),
        lambda r: r.update_many({"status": "paid"}, {"$set": {"status": "void"}}),
        lambda r: r.replace_one({"id": "123"}, {"number": "X", "status": "void", "total": 0.0, "firm_id": F2}),
        lambda r: r.delete_one({"id": "123"}),
        lambda r: r.delete_many({}),
        lambda r: r.insert_one({"number": "X-1", "status": "draft", "total": 1.0}),
    ],
)
async def test_every_unscoped_entry_point_is_blocked_and_changes_nothing(repos, call):
    repo = repos[Invoice]

    with pytest.raises(IsolationViolation):
        await call(repo)

    paid = await repo.find_without_scope({"status": "paid"}, sort={"id": 1})
    assert [i.id for i in paid] == ["123", "inv-f2-paid"]
    assert await repo.count_without_scope({}) == 6


@pytest.mark.asyncio
async def test_violation_happens_before_any_storage_call(guard):
    # No session at all: any storage access would fail with AttributeError.
    repo = GuardedRepository(None, Invoice, guard)

    with pytest.raises(IsolationViolation):
        await repo.find({"status": "paid"})
    with pytest.raises(IsolationViolation):
        await repo.aggregate([{"$group": {"_id": "$status"}}])


@pytest.mark.asyncio
async def test_record_created_under_one_tenant_is_invisible_to_another(repos):
    repo = repos[Case]
    created = await repo.insert_one(TenantScope.for_firm(F2).apply({"title": "Okafor internal review"}))

    seen_by_f1 = await repo.find({"firm_id": F1})
    seen_by_f2 = await repo.find({"firm_id": F2})
    seen_by_l1 = await repo.find({"lawyer_id": L1})

    assert created.id not in {c.id for c in seen_by_f1}
    assert created.id in {c.id for c in seen_by_f2}
    assert {c.id for c in seen_by_l1} == {"case-l1"}


@pytest.mark.asyncio
async def test_scoped_writes_only_touch_the_tenant(repos):
    repo = repos[Invoice]

    result = await repo.update_many({"firm_id": F1, "status": "paid"}, {"$set": {"status": "archived"}})

    assert result.matched_count == 1
    assert (await repo.find_one({"firm_id": F2, "id": "inv-f2-paid"})).status == "paid"

    deleted = await repo.delete_many({"firm_id": F2})
    assert deleted.deleted_count == 2
    assert await repo.count({"firm_id": F1}) == 3


@pytest.mark.asyncio
async def test_cross_tenant_update_matches_nothing(repos):
    result = await repos[Invoice].update_one({"firm_id": F2, "id": "123"}, {"$set": {"status": "void"}})

    assert result.matched_count == 0
    assert (await repos[Invoice].find_one({"firm_id": F1, "id": "123"})).status == "paid"


@pytest.mark.asyncio
async def test_unscoped_aggregation_is_blocked(repos):
    with pytest.raises(IsolationViolation, match="aggregation"):
        await repos[Invoice].aggregate([{"$group": {"_id": "$status"}}])


@pytest.mark.asyncio
async def test_scoped_aggregation_runs(repos):
    rows = await repos[Invoice].aggregate([
        {"$match": {"firm_id": F1}},
        {"$group": {"_id": "$status"}},
        {"$sort": {"_id": 1}},
    ])

    assert rows == [{"_id": "draft"}, {"_id": "paid"}, {"_id": "sent"}]


@pytest.mark.asyncio
async def test_bulk_batch_with_one_unscoped_entry_is_rejected_whole(repos):
    repo = repos[Lead]
    batch = [
        {"insert_one": {"document": {"name": "x", "firm_id": F1}}},
        {"update_one": {"filter": {"id": "lead-f1"}, "update": {"$set": {"status": "won"}}}},
    ]

    with pytest.raises(IsolationViolation) as excinfo:
        await repo.bulk_write(batch)

    assert excinfo.value.issues == ("sub-operation 1 (update_one) missing tenant scope",)
    assert excinfo.value.offending_indices == (1,)
    assert await repo.count_without_scope({"name": "x"}) == 0
    assert (await repo.find_one({"firm_id": F1, "id": "lead-f1"})).status == "new"


@pytest.mark.asyncio
async def test_scoped_bulk_batch_executes(repos):
    result = await repos[Lead].bulk_write([
        {"insert_one": {"document": {"name": "x", "firm_id": F1}}},
        {"update_one": {"filter": {"firm_id": F1, "id": "lead-f1"}, "update": {"$set": {"status": "won"}}}},
        {"delete_many": {"filter": {"lawyer_id": L1}}},
    ])

    assert result.inserted_count == 1
    assert result.modified_count == 1
    assert result.deleted_count == 1


@pytest.mark.asyncio
async def test_find_by_id_within_scope(repos):
    repo = repos[Invoice]

    assert (await repo.find_by_id_within_scope("123", {"firm_id": F1})).id == "123"
    assert await repo.find_by_id_within_scope("123", {"firm_id": F2}) is None
    assert await repo.find_by_id_within_scope("123", TenantScope.for_lawyer(L1)) is None
    assert await repo.find_by_id_within_scope("missing", {"firm_id": F1}) is None


@pytest.mark.asyncio
async def test_find_by_id_ignores_blank_companion_tenant_key(repos):
    repo = repos[Invoice]

    invoice = await repo.find_by_id_within_scope("inv-l1-sent", {"firm_id": " ", "lawyer_id": L1})

    assert invoice is not None
    assert invoice.lawyer_id == L1
    assert await repo.find_by_id_within_scope("123", {"firm_id": F1, "lawyer_id": ""}) is not None


@pytest.mark.asyncio
async def test_non_string_field_name_is_a_filter_error(repos):
    with pytest.raises(FilterError):
        await repos[Invoice].find({1: "x", "firm_id": F1})


@pytest.mark.asyncio
@pytest.mark.parametrize("scope", [None, {}, {"firm_id": F1, "lawyer_id": L1}, {"firm_id": None}])
async def test_find_by_id_rejects_invalid_scope_without_storage_call(guard, scope):
    repo = GuardedRepository(None, Invoice, guard)

    with pytest.raises(InvalidScopeArgument):
        await repo.find_by_id_within_scope("123", scope)


@pytest.mark.asyncio
async def test_skip_listed_entities_accept_arbitrary_filters(repos):
    users = repos[User]

    assert len(await users.find({})) == 2
    assert await users.count(None) == 2
    assert await users.aggregate([{"$group": {"_id": None, "n": {"$sum": 1}}}]) == [{"_id": None, "n": 2}]
    await users.update_many({}, {"$set": {"is_active": True}})
    assert await repos[Session].delete_many({}) is not None


@pytest.mark.asyncio
async def test_bypass_entry_points_accept_any_filter(repos):
    invoices = repos[Invoice]
    users = repos[User]

    assert len(await invoices.find_without_scope({})) == 6
    assert await invoices.count_without_scope(None) == 6
    assert len(await users.find_without_scope({})) == 2
    rows = await invoices.aggregate_without_scope([{"$group": {"_id": None, "total": {"$sum": "$total"}}}])
    assert rows[0]["total"] == pytest.approx(1265.0)
    assert (await invoices.find(None, bypass=True))


@pytest.mark.asyncio
async def test_factory_caches_and_rejects_unknown_entities(session, guard, entities):
    factory = RepositoryFactory(session, guard, entities)

    assert factory.for_entity("Invoice") is factory[Invoice]
    with pytest.raises(UnregisteredEntityError):
        factory.for_entity("Payment")
