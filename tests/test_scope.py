import pytest

from practice_api.isolation import InvalidScopeArgument, IsolationViolation, TenantScope


def test_firm_scope():
    scope = TenantScope.for_firm("F1")

    assert scope.key == "firm_id"
    assert scope.value == "F1"
    assert not scope.is_solo
    assert scope.as_filter() == {"firm_id": "F1"}
    assert str(scope) == "firm:F1"


def test_solo_lawyer_scope():
    scope = TenantScope(lawyer_id="L1")

    assert scope.is_solo
    assert scope.as_filter() == {"lawyer_id": "L1"}
    assert str(scope) == "lawyer:L1"


@pytest.mark.parametrize("kwargs", [{}, {"firm_id": "F1", "lawyer_id": "L1"}, {"firm_id": ""}])
def test_invalid_scopes_are_rejected(kwargs):
    with pytest.raises(InvalidScopeArgument):
        TenantScope(**kwargs)


def test_invalid_scope_is_an_isolation_violation():
    assert issubclass(InvalidScopeArgument, IsolationViolation)


def test_coerce_accepts_mappings_and_scopes():
    scope = TenantScope.for_firm("F1")

    assert TenantScope.coerce(scope) is scope
    assert TenantScope.coerce({"firm_id": "F1"}) == scope
    assert TenantScope.coerce({"lawyer_id": "L1", "firm_id": None}) == TenantScope.for_lawyer("L1")


def test_blank_companion_key_is_treated_as_absent():
    scope = TenantScope.coerce({"firm_id": " ", "lawyer_id": "L1"})

    assert scope.firm_id is None
    assert scope.is_solo
    assert scope.key == "lawyer_id"
    assert scope.as_filter() == {"lawyer_id": "L1"}
    assert scope.apply({"title": "Lease"}) == {"title": "Lease", "lawyer_id": "L1"}
    assert str(scope) == "lawyer:L1"
    assert TenantScope(firm_id="F1", lawyer_id="  ") == TenantScope.for_firm("F1")


@pytest.mark.parametrize("value", [None, {}, {"status": "open"}, "F1", {"firm_id": "F1", "lawyer_id": "L1"}])
def test_coerce_rejects_invalid_values(value):
    with pytest.raises(InvalidScopeArgument):
        TenantScope.coerce(value)


def test_apply_stamps_owner_and_drops_foreign_owner():
    document = {"title": "Estate of Doe", "firm_id": "F9", "lawyer_id": "L9"}

    stamped = TenantScope.for_lawyer("L1").apply(document)

    assert stamped == {"title": "Estate of Doe", "lawyer_id": "L1"}
    assert document["firm_id"] == "F9"
