# Logging estructurado para el motor de precios

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar

from pricing.config.settings import settings

# Sesión de factura en curso; el coordinador la fija en cada refresco REF
current_session_id: ContextVar[str] = ContextVar('current_session_id', default='')

_RESERVED = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'message', 'exc_info', 'exc_text',
    'stack_info', 'getMessage',
}


class StructuredFormatter(logging.Formatter):
    """
    Formatter que genera logs estructurados en JSON
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        sid = current_session_id.get()
        if sid:
            log_entry['session_id'] = sid

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Agregar campos extra del record
        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ObservabilityLogger:
    """
    Logger de eventos de negocio y métricas de performance
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_business_event(self, event_name: str, **kwargs):
        """
        Log para eventos de negocio importantes
        """
        self.logger.info(
            f"Business Event: {event_name}",
            extra={
                'event_type': 'business_event',
                'event_name': event_name,
                **kwargs
            }
        )

    def log_error(self, error_type: str, error_message: str, **kwargs):
        """
        Log estructurado para errores degradados (no bloqueantes)
        """
        self.logger.warning(
            f"Error: {error_type} - {error_message}",
            extra={
                'event_type': 'error',
                'error_type': error_type,
                'error_message': error_message,
                **kwargs
            }
        )

    def log_performance_metric(self, operation: str, duration_ms: float,
                               success: bool, **kwargs):
        """
        Log para métricas de performance
        """
        self.logger.info(
            f"Performance: {operation} - {duration_ms}ms - {'SUCCESS' if success else 'FAILED'}",
            extra={
                'event_type': 'performance',
                'operation': operation,
                'duration_ms': duration_ms,
                'success': success,
                **kwargs
            }
        )


def setup_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> logging.Logger:
    """
    Configura el logger raíz del paquete. La aplicación que consume la
    librería decide si lo llama.
    """
    level = level or settings.LOG_LEVEL
    json_format = settings.LOG_JSON if json_format is None else json_format

    pkg_logger = logging.getLogger("pricing")
    pkg_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return pkg_logger


# Logger global
observability_logger = ObservabilityLogger("pricing.events")
