"""Process-wide logging configuration for the CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_OWNED_MARKER = "_bgi_panel_owned"


class _ThirdPartyNoiseFilter(logging.Filter):
    """Keep bgi_panel logs; let other libraries through only at WARNING and above."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("bgi_panel"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    log_dir: str | Path | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """Install a console handler and, when ``log_dir`` is given, a file handler.

    Handlers installed by an earlier call are replaced so repeated CLI invocations in
    one interpreter (tests) do not duplicate output.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        if getattr(handler, _OWNED_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ThirdPartyNoiseFilter())
    setattr(console, _OWNED_MARKER, True)
    root.addHandler(console)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path / "bgi_panel.log"), encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(fmt)
        setattr(file_handler, _OWNED_MARKER, True)
        root.addHandler(file_handler)

    logging.captureWarnings(True)
