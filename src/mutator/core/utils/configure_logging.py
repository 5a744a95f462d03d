import logging
import sys
from typing import Dict, Optional, Union

from tqdm import tqdm

LevelLike = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    A logging handler that redirects output to `tqdm.write()`, so log
    messages do not break the progress bar of a batch apply run.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: Optional[LevelLike], fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    if isinstance(level, int):
        return level
    return fallback


def configure_logger(
        general_level: Optional[LevelLike] = 'INFO',
        module_specific_levels: Optional[Dict[str, LevelLike]] = None,
        silenced_loggers: Optional[Dict[str, LevelLike]] = None,
) -> None:
    """
    Configures the root logger and specific module loggers with a
    TQDM-friendly handler.
    """
    # 1. Create the handler and a standard formatter.
    tqdm_aware_handler = LogWithTqdm()
    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    )
    tqdm_aware_handler.setFormatter(formatter)

    # 2. Configure the root logger.
    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))

    # 3. Clear any existing handlers and add the new one.
    root_logger.handlers.clear()
    root_logger.addHandler(tqdm_aware_handler)

    # 4. Configure levels for specific modules.
    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    # 5. Muzzle noisy loggers (urllib3, werkzeug) by setting their level high.
    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))
