"""
Resultado de validaciones que juntan todos los errores antes de responder.

validate_session no se detiene en el primer campo inválido: devuelve
Failure con la lista completa en details["errors"] para que la UI marque
cada input a la vez. Quien necesita cortar el flujo usa raise_for_errors().
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar, Union

from pricing.core.exceptions import ValidationError

T = TypeVar('T')


class ErrorCodes:
    """Códigos de error por campo."""
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Líneas y descuentos
    INVALID_LINE_ITEM = "INVALID_LINE_ITEM"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    EMPTY_CART = "EMPTY_CART"
    MISSING_CUSTOMER = "MISSING_CUSTOMER"
    MISSING_WAREHOUSE = "MISSING_WAREHOUSE"


@dataclass
class Success(Generic[T]):
    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def raise_for_errors(self) -> T:
        return self.value


@dataclass
class Failure:
    error: str
    code: str = ErrorCodes.VALIDATION_ERROR
    details: Dict[str, Any] = field(default_factory=dict)

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    @property
    def errors(self) -> List[Dict[str, Any]]:
        return self.details.get("errors", [])

    @property
    def fields(self) -> List[str]:
        """Campos con error, en el orden en que se detectaron."""
        return [e.get("field") for e in self.errors]

    def raise_for_errors(self):
        raise ValidationError(self.error, details=self.details)


Result = Union[Success[T], Failure]


def success(value: T) -> Success[T]:
    return Success(value)


def failure(error: str, errors: List[Dict[str, Any]], code: str = ErrorCodes.VALIDATION_ERROR) -> Failure:
    return Failure(error=error, code=code, details={"errors": errors})
