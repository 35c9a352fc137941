import logging
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from cragsync.config import get_settings


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _format_extra(record: dict[str, Any]) -> str:
    """Render bound structured fields after the event name."""
    extra = {k: v for k, v in record["extra"].items() if k not in ("name", "_fields")}
    record["extra"]["_fields"] = " ".join(f"{k}={v}" for k, v in extra.items())
    return (
        "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | "
        "{message} {extra[_fields]}\n{exception}"
    )


def setup_logging() -> None:
    """Configure loguru for sync jobs and the CLI."""
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level> {extra}"
            ),
            backtrace=True,
            diagnose=True,
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format=_format_extra,
            backtrace=True,
            diagnose=False,
        )

    # Long-running sync jobs also keep a rotating file on disk
    log_dir = Path(settings.log_dir)
    if settings.log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "cragsync.log",
            level="INFO",
            rotation="50 MB",
            retention=5,
            serialize=True,
        )

    # Intercept stdlib logging (sqlalchemy, httpx, apscheduler, etc.)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in [
        "sqlalchemy.engine",
        "httpx",
        "apscheduler",
        "alembic",
    ]:
        logging.getLogger(name).handlers = [InterceptHandler()]


def get_logger(name: str) -> Any:
    """Get a logger bound to a name."""
    return logger.bind(name=name)
