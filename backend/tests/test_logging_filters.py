"""Credential scrubbing in log records."""

import logging

from medpal.security.logging_filters import REDACTED, SensitiveFilter, install, scrub


def test_scrub_redacts_tokens_and_passwords() -> None:
    text = 'Authorization: Bearer abc.def-ghi password="hunter22" ok'
    cleaned = scrub(text)
    assert "abc.def-ghi" not in cleaned
    assert "hunter22" not in cleaned
    assert cleaned.endswith(" ok")
    assert REDACTED in cleaned


def test_filter_scrubs_message_arguments() -> None:
    record = logging.LogRecord(
        name="medpal.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="login with %s for %s",
        args=("password=secret1", "robin@example.com"),
        exc_info=None,
    )
    assert SensitiveFilter().filter(record) is True
    assert record.getMessage() == f"login with {REDACTED} for robin@example.com"


def test_install_is_idempotent() -> None:
    name = "medpal.test.install"
    install((name,))
    install((name,))
    filters = logging.getLogger(name).filters
    assert sum(isinstance(flt, SensitiveFilter) for flt in filters) == 1
