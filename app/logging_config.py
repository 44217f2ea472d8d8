import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.config import settings

FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

# progress mutations / unlocks / approvals also go to logs/audit.log
AUDIT_LOGGERS = ("app.progress", "app.unlock", "app.tracking", "app.majors", "app.lab")


def _rotating(path: Path, level: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FMT, datefmt=DATEFMT))
    return handler


def setup_logging():
    """
    - Console + file (logs/app.log), engine loggers also in logs/audit.log
    - Rotate to avoid infinite growth
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = settings.LOG_LEVEL.upper()

    root = logging.getLogger()
    root.setLevel(level)

    # Prevent duplicate handlers
    if root.handlers:
        return

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=FMT, datefmt=DATEFMT))

    root.addHandler(console)
    root.addHandler(_rotating(log_dir / "app.log", level))

    audit = _rotating(log_dir / "audit.log", "INFO")
    for name in AUDIT_LOGGERS:
        logging.getLogger(name).addHandler(audit)

    # SQL echo only when explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
