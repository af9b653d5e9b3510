"""
JSON Schema Contract Validators

Модуль для валидации входящих запросов согласно формальным JSON Schema
контрактам. Использует библиотеку jsonschema (Draft 2020-12).

Схемы (schema/ рядом с этим модулем):
- operation_request.json: структура запроса
- params_<operation>.json: scalar параметры каждой операции
  (u64-поля ограничены диапазоном [0, 2^64 - 1])
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator

import jsonschema
from jsonschema import Draft202012Validator, ValidationError


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы поставляются как package data в schema/ рядом с этим файлом.
    """

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def has_schema(self, schema_name: str) -> bool:
        return (self._schema_dir / f"{schema_name}.json").exists()

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'params_withdraw')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если схема сама по себе невалидна
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Meta-validation
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}") from e

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]) -> Iterator[ValidationError]:
        return self.validator.iter_errors(data)


class OperationRequestValidator(ContractValidator):
    """Валидатор структуры operation request."""

    def __init__(self):
        super().__init__("operation_request")


class OperationParamsValidator(ContractValidator):
    """Валидатор params конкретной операции (schema params_<operation>)."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(params_schema_name(operation))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def params_schema_name(operation: str) -> str:
    return f"params_{operation}"


def has_params_schema(operation: str) -> bool:
    return _SCHEMA_LOADER.has_schema(params_schema_name(operation))


def validate_operation_request(data: Dict[str, Any]) -> None:
    """
    Валидация структуры запроса.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    OperationRequestValidator().validate(data)


def validate_operation_params(operation: str, params: Dict[str, Any]) -> None:
    """
    Валидация params операции.

    Raises:
        FileNotFoundError: Если для операции нет схемы
        ValidationError: Если params не соответствуют схеме
    """
    OperationParamsValidator(operation).validate(params)
