"""Logging setup shared by services: an HTTP audit trail plus module loggers."""
from __future__ import annotations

import logging
from pathlib import Path
from time import time
from typing import Optional

from fastapi import FastAPI, Request

from .config import get_settings

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(service_name: str) -> logging.FileHandler:
    log_dir = Path(get_settings().log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / f"{service_name}.log")
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def _build_audit_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    logger.addHandler(_file_handler(service_name))
    return logger


def configure_logging(service_name: str) -> None:
    """Send ``common.*`` and ``services.*`` module loggers to the service log."""

    for name in ("common", "services"):
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        if not any(getattr(h, "_service", None) == service_name for h in logger.handlers):
            handler = _file_handler(service_name)
            handler._service = service_name  # type: ignore[attr-defined]
            logger.addHandler(handler)


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    logger = _build_audit_logger(service_name)
    configure_logging(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        start = time()
        response = await call_next(request)
        duration_ms = (time() - start) * 1000
        client_ip: Optional[str] = None
        if request.client:
            client_ip = request.client.host
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        logger.info(
            "%s %s | status=%s | client=%s | duration=%.2fms",
            request.method,
            path,
            response.status_code,
            client_ip or "unknown",
            duration_ms,
        )
        return response
