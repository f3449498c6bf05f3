import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# 選課 / 緊急處理另外寫一份檔，方便事後對帳
SELECTION_LOGGERS = ("app.selection", "app.selection_config", "app.emergency", "app.audit")

FMT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def _rotating(path: Path, level: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FMT, datefmt=DATEFMT))
    return handler


def setup_logging():
    """
    - Console + LOG_DIR/app.log (default logs/)
    - LOG_DIR/selection.log only for selection / emergency / audit events
    - sqlalchemy and uvicorn.access are held at WARNING unless LOG_SQL=1
    """
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    level = os.getenv("LOG_LEVEL", "INFO").upper()

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

    selection_file = _rotating(log_dir / "selection.log", level)
    for name in SELECTION_LOGGERS:
        logging.getLogger(name).addHandler(selection_file)

    if os.getenv("LOG_SQL") != "1":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
