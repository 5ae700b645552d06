"""Rich logging with execution context and better formatting."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class PipelineLogFormatter(logging.Formatter):
    """Custom formatter with execution context."""

    def __init__(self, app_name: str, use_colors: bool = True):
        super().__init__()
        self.app_name = app_name
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with context."""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        execution_context = ""
        if hasattr(record, "execution_id"):
            execution_context = f"[{record.execution_id[:8]}] "

        scope_context = ""
        if hasattr(record, "workflow"):
            scope_context = f"[{record.workflow}"
            if getattr(record, "step", None):
                scope_context += f"/{record.step}"
            scope_context += "] "

        if self.use_colors:
            level_colors = {
                "DEBUG": "\033[36m",      # Cyan
                "INFO": "\033[32m",       # Green
                "WARNING": "\033[33m",    # Yellow
                "ERROR": "\033[31m",      # Red
                "CRITICAL": "\033[35m",   # Magenta
            }
            reset = "\033[0m"
            level_color = level_colors.get(record.levelname, "")
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"[{self.app_name}] {execution_context}{scope_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that stamps execution context on every record.

    One adapter is created per top-level run and handed down to sub-flows and
    foreach children, so every line of a run carries the same execution id.
    The workflow/step fields track the innermost scope being executed.
    """

    def __init__(self, logger: logging.Logger, execution_id: Optional[str] = None):
        super().__init__(logger, {})
        self.execution_id = execution_id
        self.current_workflow: Optional[str] = None
        self.current_step: Optional[str] = None

    def set_execution_context(
        self,
        execution_id: Optional[str] = None,
        workflow: Optional[str] = None,
        step: Optional[str] = None,
    ):
        """Set current execution context for logging."""
        if execution_id:
            self.execution_id = execution_id
        if workflow is not None:
            self.current_workflow = workflow
        self.current_step = step

    def clear_context(self):
        """Clear workflow/step context (execution id is kept)."""
        self.current_workflow = None
        self.current_step = None

    def process(self, msg, kwargs):
        """Add context to log record."""
        extra = kwargs.get("extra", {})

        if self.execution_id:
            extra["execution_id"] = self.execution_id
        if self.current_workflow:
            extra["workflow"] = self.current_workflow
        if self.current_step:
            extra["step"] = self.current_step

        kwargs["extra"] = extra
        return msg, kwargs

    def scope_started(self, workflow: str) -> Optional[str]:
        """Log workflow scope start. Returns the enclosing workflow name."""
        previous = self.current_workflow
        self.set_execution_context(workflow=workflow)
        self.info(f"--- Starting Scope: {workflow} ---")
        return previous

    def scope_ended(self, workflow: str, success: bool, previous: Optional[str] = None):
        """Log workflow scope end and restore the enclosing scope."""
        self.set_execution_context(workflow=workflow)
        outcome = "ok" if success else "failed"
        self.info(f"--- Ending Scope: {workflow} ({outcome}) ---")
        if previous is None:
            self.clear_context()
        else:
            self.set_execution_context(workflow=previous)

    def step_started(self, step: str, kind: str):
        """Log step boundary."""
        self.current_step = step
        self.debug(f"Step '{step}' ({kind})")

    def step_skipped(self, step: str, condition: str):
        """Log a step skipped by its condition."""
        self.debug(f"Step '{step}' skipped, condition is false: {condition}")

    def step_failed(self, step: str, error: str):
        """Log a validation failure."""
        self.warning(f"Step '{step}' failed: {error}")

    def loop_started(self, name: str, count: Optional[int] = None):
        """Log foreach start."""
        suffix = f" ({count} items)" if count is not None else ""
        self.info(f"--- Starting Loop: {name}{suffix} ---")

    def loop_ended(self, name: str):
        """Log foreach end."""
        self.info(f"--- Ending Loop: {name} ---")

    def subflow_entered(self, name: str):
        """Log sub-flow entry."""
        self.info(f"-> Entering SubFlow: {name}")

    def subflow_exited(self, name: str):
        """Log sub-flow exit."""
        self.info(f"<- Exiting SubFlow: {name}")


def get_context_logger(name: str = "rule_pipeline", execution_id: Optional[str] = None) -> ContextLogger:
    """Wrap a named stdlib logger in a ContextLogger."""
    return ContextLogger(logging.getLogger(name), execution_id)


def setup_rich_logging(
    app_name: str = "rule-pipeline",
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    use_file: bool = False,
    use_json: bool = False,
    logger_name: str = "rule_pipeline",
) -> logging.Logger:
    """
    Setup rich logging with better formatting.

    Handlers are attached to the package logger so every module logger under
    ``rule_pipeline.*`` and every ContextLogger built on it shares them.

    Args:
        app_name: Name shown in every console line
        log_dir: Directory for the log file (required when use_file=True)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_file: Write to log file
        use_json: Use JSON structured logging
        logger_name: Logger to configure

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    if use_json:
        formatter = logging.Formatter(
            '{"timestamp":"%(asctime)s","app":"%(app)s","level":"%(levelname)s",'
            '"execution_id":"%(execution_id)s","workflow":"%(workflow)s",'
            '"message":"%(message)s","module":"%(module)s","function":"%(funcName)s"}',
            defaults={"app": app_name, "execution_id": "", "workflow": ""},
        )
    else:
        use_colors = sys.stderr.isatty() if hasattr(sys.stderr, "isatty") else False
        formatter = PipelineLogFormatter(app_name, use_colors=use_colors)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if use_file:
        if log_dir is None:
            raise ValueError("log_dir is required when use_file=True")
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # Use plain formatter for files (no ANSI codes)
        plain_formatter = PipelineLogFormatter(app_name, use_colors=False)

        file_handler = logging.FileHandler(log_dir / f"{app_name}-{os.getpid()}.log")
        file_handler.setFormatter(plain_formatter)
        logger.addHandler(file_handler)

    return logger
