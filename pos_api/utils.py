import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from pos_api.errors import InvalidId, ValidationError

_CENTS = Decimal("0.01")
_MILLIS = Decimal("0.001")

# mayor valor que cabe en una columna INTEGER/BIGINT
MAX_ID = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _round(value, step: Decimal) -> float:
    if value is None:
        return 0.0
    numeric = float(value)
    if not math.isfinite(numeric):
        raise ValidationError("Valor numérico inválido")
    # ROUND_HALF_UP de decimal redondea alejándose de cero
    return float(Decimal(str(numeric)).quantize(step, rounding=ROUND_HALF_UP))


def to_currency(value) -> float:
    """Montos de dinero: 2 decimales."""
    return _round(value, _CENTS)


def to_quantity(value) -> float:
    """Cantidades de inventario: 3 decimales."""
    return _round(value, _MILLIS)


def parse_id(raw) -> int:
    """
    Valida un id recibido en la ruta. Acepta solo enteros positivos
    ("7", "7.0") que quepan en la columna; cualquier otra cosa lanza InvalidId.
    """
    text = str(raw).strip()
    try:
        value = int(text)
    except (TypeError, ValueError):
        try:
            numeric = float(text)
        except (TypeError, ValueError):
            raise InvalidId()
        if not math.isfinite(numeric) or not numeric.is_integer():
            raise InvalidId()
        value = int(numeric)
    if value <= 0 or value > MAX_ID:
        raise InvalidId()
    return value


def normalize_choice(value: Optional[str], choices: Iterable[str]) -> Optional[str]:
    """Devuelve la opción canónica que coincide sin importar mayúsculas, o None."""
    if not value:
        return None
    needle = value.strip().lower()
    for choice in choices:
        if choice.lower() == needle:
            return choice
    return None


def clean_text(value: Optional[str]) -> Optional[str]:
    """Recorta espacios; cadenas vacías se guardan como NULL."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
