"""Unit tests for the unified logger."""

from epubtrans.utils.unified_logger import LogLevel, LogType, UnifiedLogger


def make_logger(min_level=LogLevel.DEBUG):
    entries = []
    logger = UnifiedLogger("test", console_output=False, enable_colors=False,
                           min_level=min_level, storage_callback=entries.append)
    return logger, entries


class TestUnifiedLogger:
    """Levels, storage and the event callback."""

    def test_storage_callback(self):
        logger, entries = make_logger()
        logger.info("hello", LogType.SUMMARY, {'processed': 2})

        assert entries[0]['level'] == 'INFO'
        assert entries[0]['type'] == LogType.SUMMARY.value
        assert entries[0]['data'] == {'processed': 2}

    def test_min_level_filters(self):
        logger, entries = make_logger(LogLevel.WARNING)
        logger.debug("quiet")
        logger.info("quiet")
        logger.warning("loud")
        assert [e['message'] for e in entries] == ["loud"]

    def test_errors_go_to_stderr(self, capsys):
        logger = UnifiedLogger("test", console_output=True, enable_colors=False)
        logger.error("broken")
        logger.info("fine")
        captured = capsys.readouterr()
        assert "broken" in captured.err
        assert "fine" in captured.out
        assert "broken" not in captured.out

    def test_log_callback_levels(self):
        logger, entries = make_logger()
        callback = logger.create_log_callback()

        callback("warning", "w")
        callback("batch_translation_error", "e")
        callback("segment_mismatch_warning", "m")
        callback("file_start", "s")
        callback("debug", "d")

        assert [e['level'] for e in entries] == ['WARNING', 'ERROR', 'WARNING', 'INFO', 'DEBUG']


class TestLayouts:
    """Dedicated layouts for typed entries."""

    def test_summary_line_counts(self):
        logger, _ = make_logger()
        text = logger.format_entry(LogLevel.INFO, "mark finished", LogType.SUMMARY,
                                   {'processed': 3, 'skipped': 1, 'failed': 0})
        assert "mark finished: processed=3, skipped=1, failed=0" in text

    def test_error_detail_lists_file_and_details(self):
        logger, _ = make_logger()
        text = logger.format_entry(LogLevel.ERROR, "chapter1.xhtml: cannot read", LogType.ERROR_DETAIL,
                                   {'file': '/book/chapter1.xhtml', 'details': {'path': 'x'}})
        assert "ERROR: chapter1.xhtml: cannot read" in text
        assert "file: /book/chapter1.xhtml" in text

    def test_progress_bar(self):
        logger, _ = make_logger()
        text = logger.format_entry(LogLevel.INFO, "", LogType.PROGRESS, {'current': 1, 'total': 4})
        assert "1/4 files" in text
        assert "25.0%" in text

    def test_no_ansi_when_colors_disabled(self):
        logger, _ = make_logger()
        assert "\033[" not in logger.format_entry(LogLevel.WARNING, "plain")


class TestLibraryBridge:
    """stdlib records reach the unified logger."""

    def test_handler_forwards_records(self):
        import logging
        from epubtrans.utils.unified_logger import UnifiedLogHandler

        logger, entries = make_logger()
        library = logging.getLogger("epubtrans.tests.bridge")
        handler = UnifiedLogHandler(logger)
        library.addHandler(handler)
        library.setLevel(logging.WARNING)
        try:
            library.warning("cannot fingerprint <%s>", "p")
        finally:
            library.removeHandler(handler)

        assert entries[-1]['level'] == 'WARNING'
        assert entries[-1]['message'] == "epubtrans.tests.bridge: cannot fingerprint <p>"
