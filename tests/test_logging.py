"""Tests for structured logging."""

import logging

import pytest

from questsync.logging import LogContext, StructuredFormatter, setup_logging


def make_record(**extra: object) -> logging.LogRecord:
    logger = logging.getLogger("questsync.test")
    return logger.makeRecord(
        "questsync.test",
        logging.INFO,
        __file__,
        1,
        "Listed upstream commits",
        (),
        None,
        extra=extra or None,
    )


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_extra_fields_appended(self) -> None:
        """Fields passed through extra= follow the message."""
        formatter = StructuredFormatter("%(message)s")
        rendered = formatter.format(make_record(branch="main", count=2))
        assert rendered == "Listed upstream commits | branch=main | count=2"

    def test_plain_message(self) -> None:
        """Records without extras render unchanged."""
        formatter = StructuredFormatter("%(levelname)s %(message)s")
        assert formatter.format(make_record()) == "INFO Listed upstream commits"


class TestLogContext:
    """Tests for LogContext."""

    def test_fields_applied_inside_only(self) -> None:
        """Context fields are stamped inside the block and removed after."""
        with LogContext(install_root="/opt/questsync"):
            inside = logging.getLogRecordFactory()("n", logging.INFO, "", 0, "m", (), None)
        outside = logging.getLogRecordFactory()("n", logging.INFO, "", 0, "m", (), None)

        assert inside.install_root == "/opt/questsync"  # type: ignore[attr-defined]
        assert not hasattr(outside, "install_root")


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_unknown_level_rejected(self) -> None:
        """Unknown level names raise."""
        with pytest.raises(ValueError):
            setup_logging("LOUD")

    def test_noisy_loggers_capped(self) -> None:
        """HTTP client loggers are capped at WARNING."""
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging("DEBUG", include_timestamp=False)
            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger("questsync").level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])
