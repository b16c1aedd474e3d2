from __future__ import annotations

from typing import Any

from .errors import ValidationError


def require_fields(payload: dict, *names: str, message: str | None = None) -> None:
    """Reject payloads where any of ``names`` is absent, None or blank."""
    missing = [n for n in names if _is_blank(payload.get(n))]
    if missing:
        raise ValidationError(message or f"{' and '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def get_json_payload(request) -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion: ints and plain digit strings only.
    Rejects floats, scientific notation and booleans.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def coerce_float(value: Any, field: str) -> float | None:
    """Optional coordinate: None/"" -> None, otherwise a finite float."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if result != result or result in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a number")
    return result


def optional_str(value: Any, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length is not None:
        s = s[:max_length]
    return s


def normalize_email(value: Any) -> str:
    if not isinstance(value, str) or "@" not in value:
        raise ValidationError("Valid email is required")
    return value.strip().lower()


def normalize_promo_code(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Promo code is required")
    return value.strip().upper()
