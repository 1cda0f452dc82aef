from practice_api.isolation import (
    DeleteMany,
    InsertOne,
    TenantScope,
    UpdateOne,
    has_aggregation_scope,
    has_tenant_filter,
    is_valid_scope,
    validate_bulk_batch,
)


def test_filter_with_tenant_key_is_scoped():
    assert has_tenant_filter({"firm_id": "F1"})
    assert has_tenant_filter({"lawyer_id": "L1", "status": "open"})


def test_filter_without_tenant_key_is_not_scoped():
    assert not has_tenant_filter({"status": "paid"})
    assert not has_tenant_filter({})
    assert not has_tenant_filter(None)


def test_empty_tenant_values_do_not_count_as_scope():
    assert not has_tenant_filter({"firm_id": None})
    assert not has_tenant_filter({"firm_id": ""})
    assert not has_tenant_filter({"lawyer_id": "   ", "status": "open"})


def test_nested_tenant_key_is_not_scope():
    assert not has_tenant_filter({"$or": [{"firm_id": "F1"}, {"status": "paid"}]})
    assert not has_tenant_filter({"$and": [{"firm_id": "F1"}]})


def test_top_level_operator_value_is_accepted():
    # Only the presence of the top-level key is inspected.
    assert has_tenant_filter({"firm_id": {"$in": ["F1", "F2"]}})


def test_pipeline_without_leading_match_is_unscoped():
    assert not has_aggregation_scope([{"$group": {"_id": "$status"}}])
    assert not has_aggregation_scope([{"$group": {"_id": "$status"}}, {"$match": {"firm_id": "F1"}}])
    assert not has_aggregation_scope([])
    assert not has_aggregation_scope(None)


def test_pipeline_with_unscoped_match_is_unscoped():
    assert not has_aggregation_scope([{"$match": {"status": "paid"}}])
    assert not has_aggregation_scope([{"$match": {"$or": [{"firm_id": "F1"}]}}])


def test_pipeline_with_leading_scoped_match_is_scoped():
    assert has_aggregation_scope([{"$match": {"firm_id": "F1"}}, {"$group": {"_id": "$status"}}])
    assert has_aggregation_scope([{"$match": {"lawyer_id": "L1"}}])


def test_bulk_batch_reports_the_unscoped_entry():
    result = validate_bulk_batch([
        {"insert_one": {"document": {"name": "x", "firm_id": "F1"}}},
        {"update_one": {"filter": {"id": "123"}, "update": {"$set": {"status": "won"}}}},
    ])

    assert result.valid is False
    assert result.issues == ("sub-operation 1 (update_one) missing tenant scope",)
    assert result.offending_indices == (1,)


def test_bulk_batch_checks_inserts_on_their_document():
    result = validate_bulk_batch([InsertOne({"name": "x"}), DeleteMany({"firm_id": "F1"})])

    assert result.offending_indices == (0,)
    assert result.issues == ("sub-operation 0 (insert_one) missing tenant scope",)


def test_fully_scoped_and_empty_batches_are_valid():
    assert validate_bulk_batch([UpdateOne({"lawyer_id": "L1"}, {"$set": {"status": "x"}})]).valid
    assert validate_bulk_batch([]).valid


def test_unrecognised_bulk_entry_is_an_issue():
    result = validate_bulk_batch([{"upsert_everything": {}}])

    assert not result.valid
    assert result.offending_indices == (0,)


def test_valid_scope_requires_exactly_one_tenant():
    assert is_valid_scope({"firm_id": "F1"})
    assert is_valid_scope(TenantScope.for_lawyer("L1"))
    assert not is_valid_scope({})
    assert not is_valid_scope(None)
    assert not is_valid_scope({"firm_id": "F1", "lawyer_id": "L1"})
    assert not is_valid_scope({"firm_id": ""})
