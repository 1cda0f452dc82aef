import logging

import pytest

from practice_api.core.logging import (
    LoggingContextFilter,
    configure_logging,
    correlation_id_var,
    tenant_label,
    tenant_var,
)


def _record():
    return logging.LogRecord("practice_api.test", logging.INFO, __file__, 1, "hello", None, None)


@pytest.mark.parametrize(
    "firm_id, lawyer_id, expected",
    [
        ("F1", None, "firm:F1"),
        (None, "L1", "lawyer:L1"),
        (" ", "L1", "lawyer:L1"),
        ("F1", "L1", "firm:F1,lawyer:L1"),
        (None, "", None),
    ],
)
def test_tenant_label(firm_id, lawyer_id, expected):
    assert tenant_label(firm_id, lawyer_id) == expected


def test_filter_renders_context_onto_record():
    record = _record()
    token_corr = correlation_id_var.set("req-7")
    token_tenant = tenant_var.set((None, "L1"))
    try:
        assert LoggingContextFilter().filter(record)
    finally:
        correlation_id_var.reset(token_corr)
        tenant_var.reset(token_tenant)

    assert record.correlation_id == "req-7"
    assert record.tenant == "lawyer:L1"


def test_filter_uses_placeholders_outside_a_request():
    record = _record()

    LoggingContextFilter().filter(record)

    assert (record.correlation_id, record.tenant) == ("-", "-")


def test_configure_logging_installs_single_context_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging("debug")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        record = _record()
        token = tenant_var.set(("F1", None))
        try:
            line = handler.format(record) if handler.filter(record) else ""
        finally:
            tenant_var.reset(token)
        assert "| tenant=firm:F1 | hello" in line
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
