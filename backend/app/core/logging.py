from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

from app.core.config import settings

"""
Настройка логгера для приложения.
"""

_level = getattr(logging, settings.log_level.upper(), logging.INFO)

logger = logging.getLogger("fertiassist")
logger.setLevel(_level)
# uvicorn настраивает root logging через dictConfig, поэтому не полагаемся на propagation.
logger.propagate = False
logger.disabled = False

handler = logging.StreamHandler(sys.stdout)
handler.setLevel(logging.DEBUG)

formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
handler.setFormatter(formatter)

_handlers: list[logging.Handler] = [handler]

# Файл с timestamp в названии: backend/.data/logs/fertiassist_YYYYMMDD_HHMMSS.log
_log_file_path: Path | None = None
if settings.log_dir:
    _logs_dir = Path(settings.log_dir)
    _logs_dir.mkdir(parents=True, exist_ok=True)
    _ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    _log_file_path = _logs_dir / f"fertiassist_{_ts}.log"
    file_handler = logging.FileHandler(_log_file_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    _handlers.append(file_handler)

if not logger.handlers:
    for h in _handlers:
        logger.addHandler(h)

# Приводим логи uvicorn/fastapi к одному уровню.
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
    ext_logger = logging.getLogger(name)
    ext_logger.setLevel(_level)
    ext_logger.disabled = False
    if not ext_logger.handlers:
        for h in _handlers:
            ext_logger.addHandler(h)

root_logger = logging.getLogger()
root_logger.setLevel(_level)

logger.info(
    "Logging configured "
    f"(settings.log_level={settings.log_level!r}, "
    f"fertiassist_level={logging.getLevelName(logger.level)}, "
    f"root_level={logging.getLevelName(root_logger.level)}, "
    f"log_file={str(_log_file_path) if _log_file_path else None})"
)
