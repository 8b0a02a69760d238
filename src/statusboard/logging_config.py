"""Root logging setup for statusboard processes.

Modules log through ``logging.getLogger(__name__)``; handlers are attached
once, at process start, by the CLI.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _line_format(tag: str) -> str:
    return "[%(asctime)s] [" + tag.upper() + "] %(levelname)s %(name)s - %(message)s"


def setup_logging(
    component_name: str = "statusboard",
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """Send log records to stdout and, when ``log_file`` is set, to that file too.

    Replaces any handlers installed earlier, so calling it twice is safe.
    """
    formatter = logging.Formatter(format_string or _line_format(component_name), datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    logger = logging.getLogger(component_name)
    logger.debug("Logging to %s at level %s", log_file or "stdout", logging.getLevelName(level))
    return logger
