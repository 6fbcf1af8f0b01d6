"""JsonFormatter: structured records carrying the active changeset and actor."""

import json
import logging
import sys

from changeset_audit.config.logging import JsonFormatter, configure_logging
from changeset_audit.core.context import actor_id_ctx, changeset_id_ctx


def _record(msg="changeset_committed", exc_info=None):
    return logging.LogRecord(
        name="changeset_audit.application.audit_log_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def test_formatter_includes_context():
    changeset_token = changeset_id_ctx.set("cs-1")
    actor_token = actor_id_ctx.set("7")
    try:
        payload = json.loads(JsonFormatter().format(_record()))
    finally:
        changeset_id_ctx.reset(changeset_token)
        actor_id_ctx.reset(actor_token)

    assert payload["message"] == "changeset_committed"
    assert payload["level"] == "INFO"
    assert payload["changeset_id"] == "cs-1"
    assert payload["actor_id"] == "7"
    assert "timestamp" in payload


def test_formatter_outside_execution_has_null_context():
    payload = json.loads(JsonFormatter().format(_record()))
    assert payload["changeset_id"] is None
    assert payload["actor_id"] is None


def test_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        payload = json.loads(JsonFormatter().format(_record("changeset_failed", sys.exc_info())))
    assert "RuntimeError: boom" in payload["exc_info"]


def test_configure_logging_installs_json_handler():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        configure_logging("DEBUG")
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert isinstance(added[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        for h in root.handlers[:]:
            if h not in before:
                root.removeHandler(h)
        root.setLevel(level)
