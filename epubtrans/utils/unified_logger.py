"""
Console logging for the epubtrans commands

Commands log through one ``UnifiedLogger``. A ``LogType`` picks a dedicated
layout (run banner, progress bar, LLM exchange, error block, summary line);
everything else is a timestamped line. Library modules keep using
``logging.getLogger(__name__)``: ``setup_cli_logger`` forwards those records
here so both end up on the same console.
"""
import logging
import os
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional


class LogLevel(Enum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(Enum):
    """Selects the console layout of an entry"""
    GENERAL = "general"
    LLM_REQUEST = "llm_request"
    LLM_RESPONSE = "llm_response"
    PROGRESS = "progress"
    FILE_OPERATION = "file_operation"
    TRANSLATION_START = "translation_start"
    TRANSLATION_END = "translation_end"
    ERROR_DETAIL = "error_detail"
    SUMMARY = "summary"


_ANSI = {
    'yellow': '\033[93m',
    'white': '\033[97m',
    'gray': '\033[90m',
    'orange': '\033[38;5;214m',
    'green': '\033[92m',
    'red': '\033[91m',
    'cyan': '\033[96m',
}
_RESET = '\033[0m'

_LEVEL_COLORS = {
    LogLevel.DEBUG: 'gray',
    LogLevel.INFO: 'white',
    LogLevel.WARNING: 'yellow',
    LogLevel.ERROR: 'red',
    LogLevel.CRITICAL: 'red',
}

# Event keys that are plain level names
_EVENT_LEVELS = {level.name.lower(): level for level in LogLevel}


def colors_supported() -> bool:
    return os.environ.get('NO_COLOR') is None and sys.stdout.isatty()


def level_for_event(event: str) -> LogLevel:
    """Map a ``log_callback`` event key to a level.

    "warning" -> WARNING, "batch_translation_error" -> ERROR,
    "segment_mismatch_warning" -> WARNING, "file_start" -> INFO
    """
    key = event.lower()
    if key in _EVENT_LEVELS:
        return _EVENT_LEVELS[key]
    if "error" in key:
        return LogLevel.ERROR
    if "warning" in key or "fail" in key or "interrupted" in key:
        return LogLevel.WARNING
    if "debug" in key:
        return LogLevel.DEBUG
    return LogLevel.INFO


class UnifiedLogger:
    """
    Console logger shared by all commands

    Args:
        name: Logger name
        console_output: Print entries (errors on stderr, the rest on stdout)
        enable_colors: ANSI colors, also off when NO_COLOR is set or stdout is not a tty
        min_level: Entries below this level are dropped
        storage_callback: Receives every kept entry as a dict
    """

    def __init__(self,
                 name: str = "epubtrans",
                 console_output: bool = True,
                 enable_colors: bool = True,
                 min_level: LogLevel = LogLevel.INFO,
                 storage_callback: Optional[Callable[[Dict[str, Any]], None]] = None):
        self.name = name
        self.console_output = console_output
        self.enable_colors = enable_colors and colors_supported()
        self.min_level = min_level
        self.storage_callback = storage_callback
        self.run_started: Optional[datetime] = None

        self._layouts = {
            LogType.LLM_REQUEST: self._llm_request_lines,
            LogType.LLM_RESPONSE: self._llm_response_lines,
            LogType.PROGRESS: self._progress_lines,
            LogType.TRANSLATION_START: self._start_lines,
            LogType.TRANSLATION_END: self._end_lines,
            LogType.ERROR_DETAIL: self._error_lines,
            LogType.SUMMARY: self._summary_lines,
        }

    def _paint(self, color: str, text: str) -> str:
        if not self.enable_colors:
            return text
        return f"{_ANSI[color]}{text}{_RESET}"

    @staticmethod
    def _clock() -> str:
        return datetime.now().strftime("%H:%M:%S")

    def format_entry(self, level: LogLevel, message: str,
                     log_type: LogType = LogType.GENERAL,
                     data: Optional[Dict[str, Any]] = None) -> str:
        layout = self._layouts.get(log_type)
        if layout is not None:
            return "\n".join(layout(message, data or {}))
        prefix = "" if level == LogLevel.INFO else f"[{level.name}] "
        return self._paint(_LEVEL_COLORS[level], f"[{self._clock()}] {prefix}{message}")

    def _llm_request_lines(self, message, data):
        yield self._paint('yellow', "=" * 80)
        yield self._paint('yellow', f"[{self._clock()}] SENDING TO {data.get('model', 'LLM')}")
        if data.get('system_prompt'):
            yield self._paint('gray', "[SYSTEM]")
            yield self._paint('orange', data['system_prompt'])
        yield self._paint('gray', "[USER]")
        yield self._paint('orange', data.get('user_prompt', ''))

    def _llm_response_lines(self, message, data):
        header = f"[{self._clock()}] RESPONSE"
        if 'execution_time' in data:
            header += f" ({data['execution_time']:.2f}s)"
        yield self._paint('green', header)
        yield self._paint('green', data.get('response', ''))

    def _progress_lines(self, message, data):
        current, total = data.get('current', 0), data.get('total', 0)
        ratio = current / total if total else 0.0
        filled = int(30 * ratio)
        bar = '█' * filled + '░' * (30 - filled)
        yield self._paint('cyan', f"PROGRESS: {current}/{total} {data.get('label', 'files')} "
                                  f"[{bar}] {ratio * 100:.1f}%")

    def _start_lines(self, message, data):
        self.run_started = datetime.now()
        yield self._paint('yellow', "TRANSLATION STARTED")
        if data.get('book_title'):
            yield self._paint('white', f"Book: {data['book_title']}")
        yield self._paint('white', f"Languages: {data.get('source_lang', '?')} -> {data.get('target_lang', '?')}")
        yield self._paint('gray', f"Model: {data.get('model', '?')}")
        if data.get('total_files') is not None:
            yield self._paint('white', f"Content files: {data['total_files']}")

    def _end_lines(self, message, data):
        yield self._paint('white', "TRANSLATION COMPLETE")
        if self.run_started is not None:
            yield self._paint('gray', f"Duration: {datetime.now() - self.run_started}")
            self.run_started = None
        stats = data.get('stats', {})
        yield self._paint('white', f"Merged units: {stats.get('merged', 0)}")
        for key, label in (('rejected', "Rejected units"), ('failed_batches', "Failed batches")):
            if stats.get(key):
                yield self._paint('yellow', f"{label}: {stats[key]}")

    def _error_lines(self, message, data):
        yield self._paint('red', f"[{self._clock()}] ERROR: {message}")
        if data.get('file'):
            yield self._paint('red', f"  file: {data['file']}")
        if data.get('details'):
            yield self._paint('red', f"  details: {data['details']}")

    def _summary_lines(self, message, data):
        color = 'yellow' if data.get('failed') else 'white'
        counts = ", ".join(f"{key}={data.get(key, 0)}" for key in ('processed', 'skipped', 'failed'))
        yield self._paint(color, f"[{self._clock()}] {message}: {counts}")

    def log(self, level: LogLevel, message: str,
            log_type: LogType = LogType.GENERAL,
            data: Optional[Dict[str, Any]] = None):
        if level.value < self.min_level.value:
            return

        if self.console_output:
            stream = sys.stderr if level.value >= LogLevel.ERROR.value else sys.stdout
            text = self.format_entry(level, message, log_type, data)
            try:
                print(text, file=stream, flush=True)
            except UnicodeEncodeError:
                print(text.encode('ascii', 'replace').decode('ascii'), file=stream, flush=True)

        if self.storage_callback:
            self.storage_callback({
                'timestamp': datetime.now().isoformat(),
                'level': level.name,
                'type': log_type.value,
                'message': message,
                'data': data or {},
            })

    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.ERROR, message, log_type, data)

    def critical(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.CRITICAL, message, log_type, data)

    def create_log_callback(self) -> Callable[[str, str], None]:
        """``(event, message)`` callback for the retry manager and the pipeline."""
        def callback(event: str, message: str):
            self.log(level_for_event(event), message)
        return callback


class UnifiedLogHandler(logging.Handler):
    """Forwards stdlib ``logging`` records to a ``UnifiedLogger``."""

    def __init__(self, target: UnifiedLogger):
        super().__init__()
        self.target = target

    def emit(self, record: logging.LogRecord):
        try:
            level = LogLevel(min(max(record.levelno // 10 * 10, 10), 50))
            self.target.log(level, f"{record.name}: {record.getMessage()}")
        except Exception:
            self.handleError(record)


_global_logger: Optional[UnifiedLogger] = None


def get_logger(name: str = "epubtrans", **kwargs) -> UnifiedLogger:
    """Process-wide logger, created on first use with ``kwargs``."""
    global _global_logger
    if _global_logger is None:
        _global_logger = UnifiedLogger(name, **kwargs)
    return _global_logger


def setup_cli_logger(enable_colors: bool = True) -> UnifiedLogger:
    """Console logger for the CLI, also receiving the ``epubtrans.*`` library records."""
    # Import here to avoid circular dependencies
    from epubtrans.config import DEBUG_MODE

    min_level = LogLevel.DEBUG if DEBUG_MODE else LogLevel.INFO
    logger = get_logger(console_output=True, enable_colors=enable_colors, min_level=min_level)
    logger.enable_colors = enable_colors and colors_supported()
    logger.min_level = min_level

    library_logger = logging.getLogger("epubtrans")
    if not any(isinstance(h, UnifiedLogHandler) for h in library_logger.handlers):
        library_logger.addHandler(UnifiedLogHandler(logger))
    library_logger.setLevel(logging.DEBUG if DEBUG_MODE else logging.WARNING)
    return logger
