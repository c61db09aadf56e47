"""Logging setup shared by the simulation runner and tests.

Call it before importing modules that may configure logging themselves
(matplotlib in particular).
"""
import datetime
import logging
import os
import sys

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(filename)s:%(lineno)d %(message)s"
RUN_FORMAT = "%(asctime)s [%(levelname)-7s] %(filename)s:%(lineno)d %(message)s"
DEFAULT_DATEFMT = "%H:%M:%S"


def ensure_logging(level: int = logging.INFO, *, force: bool = False) -> None:
    """Ensure the root logger writes to stdout.

    - No root handlers yet: configure one via basicConfig.
    - Handlers exist and `force` is True: replace them.
    - Otherwise only the root level is changed.

    Safe to call multiple times.
    """
    root = logging.getLogger()
    if force or not root.handlers:
        logging.basicConfig(level=level, format=DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT, stream=sys.stdout, force=force)
    else:
        root.setLevel(level)


def configure_debug(debug: bool) -> None:
    ensure_logging(logging.DEBUG if debug else logging.INFO)


def _safe_tag(run_tag: str) -> str:
    tag = (run_tag or "run").lower()
    return "".join(c if c.isalnum() or c in '._-' else '_' for c in tag)


def configure_run_logging(run_tag: str, *, log_dir: str = "results/logs",
                          console_level: int = logging.INFO, file_level: int = logging.DEBUG,
                          force: bool = False) -> str:
    """Configure console + per-run file logging.

    - A console StreamHandler on stdout at `console_level`.
    - A file handler at `file_level` under `log_dir`, named after `run_tag`
      and the wall-clock start time. The tag is not repeated on each line.

    Returns the absolute path of the logfile. With `force` the root handlers
    are replaced.
    """
    ensure_logging(level=console_level, force=force)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("matplotlib.font_manager").setLevel(logging.WARNING)

    os.makedirs(log_dir, exist_ok=True)
    safe_tag = _safe_tag(run_tag)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    logfile = os.path.join(log_dir, f"{safe_tag}_{timestamp}.log")

    root = logging.getLogger()
    if not force:
        for h in root.handlers:
            if isinstance(h, logging.FileHandler) and safe_tag in os.path.basename(h.baseFilename):
                return os.path.abspath(h.baseFilename)

    # Example: "17:22:40 [INFO   ] engine.py:86 [sim_t=...] Statistics collection started"
    formatter = logging.Formatter(RUN_FORMAT, datefmt=DEFAULT_DATEFMT)

    if force:
        root.handlers = [h for h in root.handlers if not isinstance(h, logging.StreamHandler)]
    console_exists = any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
                         and getattr(h, 'stream', None) is sys.stdout for h in root.handlers)
    if not console_exists:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(console_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

    fh = logging.FileHandler(logfile, mode='a', encoding='utf-8')
    fh.setLevel(file_level)
    fh.setFormatter(formatter)
    root.addHandler(fh)

    # root at the lower of the two levels so the file gets DEBUG
    root.setLevel(min(console_level, file_level))

    return os.path.abspath(logfile)
