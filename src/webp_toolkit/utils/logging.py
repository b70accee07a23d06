"""日志配置。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"

# DEBUG 级别下 Pillow 会逐块输出 PNG/WebP 解析日志
NOISY_LOGGERS = ("PIL",)


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """配置根 logger，可选同时写入日志文件。"""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
