"""
Tests for the JSON log formatter.

These tests verify:
  - Each record becomes one JSON object with timestamp, level, logger, message
  - Exceptions are rendered into an "exception" field
  - Nothing beyond those fields leaks into the output
"""

import json
import logging
import sys

from bank_approvals.logging_config import JsonFormatter


def make_record(msg, *args, exc_info=None):
    return logging.LogRecord(
        name="bank_approvals.services.approval_service",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJsonFormatter:

    def test_plain_record(self):
        record = make_record("Transfer %s approved without credit", "TXN1")

        line = json.loads(JsonFormatter().format(record))

        assert set(line) == {"timestamp", "level", "logger", "message"}
        assert line["level"] == "WARNING"
        assert line["logger"] == "bank_approvals.services.approval_service"
        assert line["message"] == "Transfer TXN1 approved without credit"

    def test_exception_is_included(self):
        try:
            raise RuntimeError("balance moved")
        except RuntimeError:
            record = make_record("Approval failed", exc_info=sys.exc_info())

        line = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: balance moved" in line["exception"]

    def test_extra_attributes_are_not_copied(self):
        record = make_record("Notification socket opened")
        record.extra = {"account_id": "abc"}

        line = json.loads(JsonFormatter().format(record))

        assert "account_id" not in line
