"""
Audit logging для ledger core.

Structured JSON logging: каждое решение pipeline (gate block, commit,
interaction failure) пишется как отдельное событие с correlation id операции.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar, Token
from typing import Any, Optional

# Correlation id текущей операции (вложенные вызовы получают свой id)
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")


class StructuredFormatter(logging.Formatter):
    """JSON formatter: одна строка на событие."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        operation_id = operation_id_var.get()
        if operation_id:
            log_data["operation_id"] = operation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger событий pipeline.

    Методы соответствуют состояниям операции; уровень отражает тяжесть:
    block/abort — WARNING, interaction failure — CRITICAL.
    """

    def __init__(self, name: str = "ledger.audit"):
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(self, level: int, event_type: str, message: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "operation_id": operation_id_var.get(),
            **fields,
        }
        self._logger.log(level, f"{event_type}: {message}", extra={"extra_fields": extra})

    def operation_received(self, operation: str, roles: list[str]) -> None:
        self._log(
            logging.INFO,
            "OPERATION_RECEIVED",
            f"{operation} received",
            operation=operation,
            roles=roles,
        )

    def gate_blocked(self, gate: str, error_code: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "GATE_BLOCKED",
            f"{gate} blocked: {reason}",
            gate=gate,
            error_code=error_code,
            reason=reason,
        )

    def operation_aborted(self, operation: str, error_code: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "OPERATION_ABORTED",
            f"{operation} aborted with {error_code}",
            operation=operation,
            error_code=error_code,
            reason=reason,
        )

    def operation_effected(self, operation: str, written: list[str], created: list[str]) -> None:
        self._log(
            logging.INFO,
            "OPERATION_EFFECTED",
            f"{operation} committed {len(written)} write(s), {len(created)} create(s)",
            operation=operation,
            written=written,
            created=created,
        )

    def interaction_failed(self, operation: str, target: str, reason: str) -> None:
        self._log(
            logging.CRITICAL,
            "INTERACTION_FAILED",
            f"{operation}: interaction with {target} failed after commit",
            operation=operation,
            target=target,
            reason=reason,
        )

    def operation_done(self, operation: str, interactions: int) -> None:
        self._log(
            logging.INFO,
            "OPERATION_DONE",
            f"{operation} done",
            operation=operation,
            interactions=interactions,
        )

    def security_event(self, event: str, severity: str = "medium", **details: Any) -> None:
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL,
        }.get(severity, logging.WARNING)
        self._log(
            level,
            "SECURITY_EVENT",
            f"Security event: {event}",
            security_event=event,
            severity=severity,
            **details,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Настройка root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR, CRITICAL
        json_format: StructuredFormatter вместо plain text
        log_file: дополнительный файл вывода
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def begin_operation(operation_id: Optional[str] = None) -> Token:
    """
    Установка correlation id для текущего контекста.

    Returns:
        Token для end_operation (восстанавливает внешний id при re-entry)
    """
    return operation_id_var.set(operation_id or uuid.uuid4().hex)


def end_operation(token: Token) -> None:
    operation_id_var.reset(token)


def get_operation_id() -> str:
    return operation_id_var.get()


audit_log = AuditLogger()
