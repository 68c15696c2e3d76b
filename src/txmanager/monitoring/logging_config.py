"""Route stdlib logging through structlog.

Modules log with ``logging.getLogger(__name__)`` and ``extra={...}``; the
extra fields end up as keys of the JSON line (or console line).
"""
from __future__ import annotations

import logging
import sys

import structlog

from txmanager.config import settings


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = (log_format or settings.log_format).lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # web3 logs every provider request at DEBUG
    for name in ("web3", "urllib3", "aiohttp"):
        logging.getLogger(name).setLevel(logging.WARNING)
