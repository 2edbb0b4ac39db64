"""Tests for logging context propagation.

Covers:
- ContextVar injection into log events (request_id, owner_id, source_id)
- Scoped ingest_context restoring previous values
- Ingestion event emission
"""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from lectern.logging import (
    add_ingest_context,
    clear_ingest_context,
    configure_logging,
    get_request_id,
    ingest_context,
    set_ingest_context,
)
from lectern.services.ingest import ingest_upload


class TestContextVars:
    """Tests for call-scoped ContextVars."""

    def setup_method(self):
        clear_ingest_context()

    def teardown_method(self):
        clear_ingest_context()

    def test_values_injected(self):
        """Set values appear in the log event dict."""
        set_ingest_context("req-1", owner_id="owner-1", source_id="src-1")
        event_dict = add_ingest_context(None, "info", {})
        assert event_dict == {"request_id": "req-1", "owner_id": "owner-1", "source_id": "src-1"}
        assert get_request_id() == "req-1"

    def test_none_values_not_injected(self):
        """Unset context vars are omitted from log events."""
        set_ingest_context("req-1")
        event_dict = add_ingest_context(None, "info", {})
        assert "owner_id" not in event_dict
        assert "source_id" not in event_dict

    def test_explicit_event_fields_win(self):
        """A field passed to the log call is not overwritten by context."""
        set_ingest_context(source_id="from-context")
        event_dict = add_ingest_context(None, "info", {"source_id": "explicit"})
        assert event_dict["source_id"] == "explicit"

    def test_clear_clears_all(self):
        set_ingest_context("req-1", owner_id="o", source_id="s")
        clear_ingest_context()
        assert add_ingest_context(None, "info", {}) == {}


class TestIngestContext:
    """Tests for the scoped context manager."""

    def setup_method(self):
        clear_ingest_context()

    def teardown_method(self):
        clear_ingest_context()

    def test_scoped_values_restored(self):
        set_ingest_context(owner_id="outer")
        with ingest_context(owner_id="inner", source_id="src"):
            assert add_ingest_context(None, "info", {})["owner_id"] == "inner"
        event_dict = add_ingest_context(None, "info", {})
        assert event_dict["owner_id"] == "outer"
        assert "source_id" not in event_dict

    def test_restored_after_exception(self):
        with pytest.raises(ValueError):
            with ingest_context(source_id="src"):
                raise ValueError("boom")
        assert "source_id" not in add_ingest_context(None, "info", {})


class TestIngestionEvents:
    """Ingestion emits structured events."""

    def test_upload_event_emitted(self, repo, storage):
        with capture_logs() as logs:
            ingest_upload(repo, storage, "owner-9", "notes.md", b"# Notes\n")

        events = [entry["event"] for entry in logs]
        assert "chapters_materialized" in events
        assert "upload_ingested" in events


class TestConfigureLogging:
    """configure_logging wires structlog through the stdlib root logger."""

    def teardown_method(self):
        logging.getLogger().handlers.clear()
        structlog.reset_defaults()

    def test_json_output_includes_context(self, capsys):
        configure_logging(json_format=True, level="INFO")
        logger = structlog.get_logger("lectern.test")
        with ingest_context(owner_id="owner-1"):
            logger.info("something_happened", extra_field="value")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "something_happened"
        assert payload["owner_id"] == "owner-1"
        assert payload["extra_field"] == "value"
        assert payload["level"] == "info"

    def test_level_filters_events(self, capsys):
        configure_logging(json_format=True, level="WARNING")
        structlog.get_logger("lectern.test").info("quiet_event")
        assert "quiet_event" not in capsys.readouterr().out
