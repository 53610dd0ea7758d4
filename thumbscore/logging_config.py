"""
Research Logging System
=======================
Structured logging for the scoring engine and the corpus trainer.

This module provides:
- Structured JSON logging for machine-parseable outputs
- Dedicated loggers for the trainer, thumbnail scores and model decisions
- Log file organization by training run
- Integration with the trainer stages

Usage:
    from thumbscore.logging_config import get_research_logger, log_thumbnail_score

    logger = get_research_logger("trainer")
    logger.info("Sampled category", extra={"category_id": "20", "videos": 10})

    log_thumbnail_score(result, category="Gaming")
    log_model_decision("default_model_fallback", {"reason": "no thumbnails"})
"""

import sys
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Union

from .config import get_config


# Attributes every LogRecord carries; anything else came in through extra={}
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename',
    'funcName', 'levelname', 'levelno', 'lineno',
    'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info',
    'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'context',
))


# =============================================================================
# CUSTOM FORMATTERS
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON objects with consistent structure:
    {
        "timestamp": "2024-01-15T10:30:00.123456",
        "level": "INFO",
        "logger": "research.scores",
        "message": "Scored thumbnail: 72",
        "context": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, 'context') and record.context:
            log_data['context'] = record.context

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.

    Format: [LEVEL] logger: message (key=value, ...)
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"

        msg = f"[{level}] {record.name}: {record.getMessage()}"

        extras = []
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, (str, int, float, bool)):
                extras.append(f"{key}={value}")
            elif isinstance(value, dict) and len(value) < 3:
                extras.append(f"{key}={value}")

        if extras:
            msg += f" ({', '.join(extras)})"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# LOGGER FACTORY
# =============================================================================

_loggers: Dict[str, logging.Logger] = {}
_initialized: bool = False


def _ensure_log_directories():
    """Ensure log directories exist."""
    log_dir = get_config().paths.logs
    log_dir.mkdir(parents=True, exist_ok=True)

    for sub in ("trainer", "scores", "decisions"):
        (log_dir / sub).mkdir(exist_ok=True)


def _setup_root_logger():
    """Configure the root logger with console handler."""
    global _initialized
    if _initialized:
        return

    config = get_config()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.research.log_level, logging.INFO))

    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    _initialized = True


def get_research_logger(
    name: str,
    log_to_file: bool = True,
    experiment_name: Optional[str] = None
) -> logging.Logger:
    """
    Get or create a research logger.

    Args:
        name: Logger name (e.g., "trainer", "scores", "decisions", "app")
        log_to_file: Whether to write logs to file
        experiment_name: Optional run name for file organization

    Returns:
        Configured logger instance
    """
    _setup_root_logger()
    _ensure_log_directories()

    full_name = f"research.{name}"

    if full_name in _loggers:
        return _loggers[full_name]

    config = get_config()
    logger = logging.getLogger(full_name)
    logger.setLevel(getattr(logging, config.research.log_level, logging.INFO))
    logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    logger.addHandler(console_handler)

    if log_to_file:
        exp_name = experiment_name or config.research.experiment_name
        log_file = get_run_log_path(exp_name, log_type=name)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    _loggers[full_name] = logger
    return logger


class RunLoggerAdapter(logging.LoggerAdapter):
    """Stamps run_id on every record while keeping per-call extra fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_trainer_logger(run_id: Optional[str] = None) -> logging.Logger:
    """Get a logger for corpus-analysis training runs."""
    logger = get_research_logger("trainer")
    if run_id:
        logger = RunLoggerAdapter(logger, {"run_id": run_id})
    return logger


def get_score_logger() -> logging.Logger:
    """Get a logger for thumbnail scores."""
    return get_research_logger("scores")


def get_decision_logger() -> logging.Logger:
    """Get a logger for model-level decisions (fallbacks, reloads)."""
    return get_research_logger("decisions")


# =============================================================================
# CONVENIENCE LOGGING FUNCTIONS
# =============================================================================

def log_thumbnail_score(
    result,
    category: Optional[str] = None,
    model_source: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log a computed ScoreResult.

    Args:
        result: The ScoreResult produced by the scoring engine
        category: Content category the thumbnail was scored against
        model_source: Where the active model came from ("file" or "default")
        logger: Optional logger override
    """
    config = get_config()
    if not config.research.log_scores:
        return

    log = logger or get_score_logger()
    log.info(
        f"Scored thumbnail: {result.overall}",
        extra={
            'scores': {
                'text': result.text,
                'visual': result.visual,
                'faces': result.faces,
                'composition': result.composition,
                'overall': result.overall,
            },
            'category': category,
            'model_source': model_source,
        }
    )


def log_model_decision(
    decision_type: str,
    details: Dict[str, Any],
    run_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log a model-level decision.

    Args:
        decision_type: Type of decision (e.g., "default_model_fallback", "model_reload")
        details: Decision details
        run_id: Training run ID, when the decision came from the trainer
        logger: Optional logger override
    """
    config = get_config()
    if not config.research.log_decisions:
        return

    log = logger or get_decision_logger()
    extra = {
        'decision_type': decision_type,
        'details': details
    }
    if run_id:
        extra['run_id'] = run_id

    log.info(f"Decision: {decision_type}", extra=extra)


def log_stage_start(
    stage_name: str,
    run_id: str,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log the start of a trainer stage."""
    log = logger or get_trainer_logger()
    log.info(
        f"Starting stage: {stage_name}",
        extra={
            'stage_name': stage_name,
            'run_id': run_id,
            'event': 'stage_start',
        }
    )


def log_stage_complete(
    stage_name: str,
    run_id: str,
    duration_seconds: float,
    summary: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log the completion of a trainer stage."""
    log = logger or get_trainer_logger()
    log.info(
        f"Completed stage: {stage_name} ({duration_seconds:.2f}s)",
        extra={
            'stage_name': stage_name,
            'run_id': run_id,
            'event': 'stage_complete',
            'duration_seconds': duration_seconds,
            'summary': summary or "completed"
        }
    )


def log_stage_error(
    stage_name: str,
    run_id: str,
    error: str,
    duration_seconds: float,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log a trainer stage error."""
    log = logger or get_trainer_logger()
    log.error(
        f"Stage failed: {stage_name}",
        extra={
            'stage_name': stage_name,
            'run_id': run_id,
            'event': 'stage_error',
            'error': error,
            'duration_seconds': duration_seconds
        }
    )


# =============================================================================
# LOG FILE UTILITIES
# =============================================================================

def get_run_log_path(
    experiment_name: str,
    log_type: str = "trainer"
) -> Path:
    """Path of the JSONL file a research logger of this type writes to."""
    config = get_config()
    log_dir = config.paths.logs / log_type
    timestamp = datetime.now().strftime("%Y%m%d")
    return log_dir / f"{experiment_name}_{timestamp}.jsonl"


def read_log_file(log_path: Union[str, Path]) -> list:
    """
    Read a JSONL log file and return list of log entries.

    Lines that are not valid JSON are skipped.

    Args:
        log_path: Path to the log file

    Returns:
        List of parsed log entry dictionaries
    """
    entries = []
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
    return entries
