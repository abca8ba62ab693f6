from __future__ import annotations

import logging
import sys
from typing import Any, Protocol, runtime_checkable

import structlog
from rich.logging import RichHandler
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

_CONFIGURED = False

# Per-request INFO lines from the artifact store client.
_NOISY = ("httpx", "httpcore")


@runtime_checkable
class ILogger(Protocol):
    def debug(self, event: str, **kw: Any) -> Any: ...
    def info(self, event: str, **kw: Any) -> Any: ...
    def warning(self, event: str, **kw: Any) -> Any: ...
    def error(self, event: str, **kw: Any) -> Any: ...
    def exception(self, event: str, **kw: Any) -> Any: ...
    def bind(self, **kw: Any) -> "ILogger": ...


def _processors(fmt: str) -> list[Any]:
    renderer: Any
    if fmt == "console":
        renderer = structlog.processors.KeyValueRenderer(
            key_order=["event", "variant", "stage"], drop_missing=True
        )
    else:
        renderer = structlog.processors.JSONRenderer()
    return [
        merge_contextvars,
        structlog.processors.add_log_level,
        # Concurrent matrix jobs differ by worker thread.
        structlog.processors.CallsiteParameterAdder(
            {structlog.processors.CallsiteParameter.THREAD_NAME}
        ),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(*, level: str = "INFO", fmt: str = "console") -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler: logging.Handler
    if fmt == "console":
        handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=False,
            show_path=False,
            console=None,
        )
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level.upper())
    root.addHandler(handler)
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_processors(fmt),
        wrapper_class=structlog.make_filtering_bound_logger(level.upper()),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str = "build_wheel_pipeline") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind(**values: Any) -> None:
    bind_contextvars(**values)


def clear_bindings() -> None:
    clear_contextvars()
