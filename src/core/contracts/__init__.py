"""
Contract Validation Module

Модуль для валидации JSON контрактов входящих запросов.
"""

from .validators import (
    ContractValidator,
    OperationParamsValidator,
    OperationRequestValidator,
    SchemaLoader,
    has_params_schema,
    params_schema_name,
    validate_operation_params,
    validate_operation_request,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "OperationRequestValidator",
    "OperationParamsValidator",
    # Functions
    "has_params_schema",
    "params_schema_name",
    "validate_operation_request",
    "validate_operation_params",
]
