import logging

from farmrecords.log_utils import LOG_FORMAT, ContextFormatter, SanitizingFilter, sanitize


class TestSanitize:
    def test_masks_sensitive_keys(self):
        clean = sanitize({"password": "pw", "accessToken": "abc", "userId": "U1"})
        assert clean == {"password": "[REDACTED]", "accessToken": "[REDACTED]", "userId": "U1"}

    def test_email_keeps_prefix_and_domain(self):
        assert sanitize({"email": "taro@example.com"})["email"] == "ta***@example.com"

    def test_nested(self):
        clean = sanitize({"context": [{"phone": "090-0000-0000", "operation": "list"}]})
        assert clean["context"][0] == {"phone": "[REDACTED]", "operation": "list"}


def _record(msg, args=None, context=None):
    record = logging.LogRecord("farmrecords", logging.ERROR, __file__, 1, msg, args, None)
    if context is not None:
        record.context = context
    return record


class TestSanitizingFilter:
    def test_masks_context_without_touching_message(self):
        record = _record("Failed to list records", context={"operation": "list", "password": "pw"})
        assert SanitizingFilter().filter(record) is True
        assert record.context == {"operation": "list", "password": "[REDACTED]"}
        assert record.getMessage() == "Failed to list records"


class TestContextFormatter:
    def test_context_appended_once_per_handler(self):
        record = _record("Failed to list records", context={"operation": "list", "password": "pw"})
        SanitizingFilter().filter(record)
        SanitizingFilter().filter(record)
        out = ContextFormatter("%(message)s").format(record)
        assert out == "Failed to list records {'operation': 'list', 'password': '[REDACTED]'}"
        assert ContextFormatter("%(message)s").format(record) == out

    def test_percent_in_context_with_args(self):
        record = _record("Import of %s failed", ("harvests",), context={"note": "100% done"})
        out = ContextFormatter(LOG_FORMAT).format(record)
        assert "Import of harvests failed {'note': '100% done'}" in out

    def test_no_context(self):
        assert ContextFormatter("%(message)s").format(_record("plain")) == "plain"
