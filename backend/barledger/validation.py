from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, Numeric, String, Text

from .errors import ValidationError
from .money import ZERO, quantize_quantity, to_decimal
from .models.catalog import SALE_TYPE_DOSE, SALE_TYPES

# Maximum price: R$ 9.999.999,99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "category", "subcategory", "description",
        "cost_price_cents", "unit_price_cents", "sale_type",
        "base_unit_size", "low_stock_threshold", "dose_options", "is_active",
    }),
    required_on_create=frozenset({"name", "unit_price_cents"}),
)

# No balance_cents: only settlement and payments move it
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "contact", "credit_limit_cents"}),
    required_on_create=frozenset({"name"}),
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "contact_person", "phone", "email", "address", "cnpj"}),
    required_on_create=frozenset({"name"}),
)


def _columns_by_key(model) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Numeric):
        return parse_quantity(value, col.key, allow_zero=True)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Validate and normalize incoming JSON against the model's column metadata
    and the policy allowlist. Returns a patch containing only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    for k in payload:
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank")
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(key: str, value) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_product(patch: dict, existing=None) -> None:
    """Rules spanning several product fields."""
    _check_price("unit_price_cents", patch.get("unit_price_cents"))
    _check_price("cost_price_cents", patch.get("cost_price_cents"))

    sale_type = patch.get("sale_type", getattr(existing, "sale_type", None))
    if sale_type is not None and sale_type not in SALE_TYPES:
        raise ValidationError(f"sale_type must be one of {', '.join(SALE_TYPES)}")

    base_unit_size = patch.get("base_unit_size", getattr(existing, "base_unit_size", None))
    if base_unit_size is not None and base_unit_size <= ZERO:
        raise ValidationError("base_unit_size must be > 0")
    if sale_type == SALE_TYPE_DOSE and base_unit_size is None:
        raise ValidationError("base_unit_size is required for dose products")

    threshold = patch.get("low_stock_threshold")
    if threshold is not None and threshold < ZERO:
        raise ValidationError("low_stock_threshold must be >= 0")

    if "dose_options" in patch and patch["dose_options"] is not None:
        patch["dose_options"] = _normalize_dose_options(patch["dose_options"])


def _normalize_dose_options(raw) -> list[dict]:
    if not isinstance(raw, list):
        raise ValidationError("dose_options must be a list")
    options = []
    for i, opt in enumerate(raw):
        if not isinstance(opt, dict) or not str(opt.get("name") or "").strip():
            raise ValidationError(f"dose_options[{i}] needs a name")
        size = parse_quantity(opt.get("size"), f"dose_options[{i}].size")
        price = parse_cents(opt.get("price_cents"), f"dose_options[{i}].price_cents", allow_zero=True)
        options.append({
            "name": str(opt["name"]).strip(),
            "size": float(size),
            "price_cents": price,
            "enabled": bool(opt.get("enabled", True)),
        })
    return options


def enforce_rules_customer(patch: dict) -> None:
    limit = patch.get("credit_limit_cents")
    if limit is not None and limit < 0:
        raise ValidationError("credit_limit_cents must be >= 0")


def parse_cents(value: Any, key: str, *, allow_zero: bool = False) -> int:
    """Integer cents, strictly positive unless allow_zero."""
    if value is None:
        raise ValidationError(f"{key} is required")
    cents = _coerce_int(key, value)
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")
    return cents


def parse_optional_cents(value: Any, key: str) -> int | None:
    if value is None or value == "":
        return None
    return parse_cents(value, key, allow_zero=True)


def parse_quantity(value: Any, key: str, *, allow_zero: bool = False) -> Decimal:
    """Decimal quantity with three places; strictly positive unless allow_zero."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        qty = quantize_quantity(to_decimal(value.strip() if isinstance(value, str) else value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{key} must be a number")
    if not qty.is_finite():
        raise ValidationError(f"{key} must be a number")
    if qty < ZERO or (qty == ZERO and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    return qty


@dataclass(frozen=True)
class ItemInput:
    product_id: int
    name: str
    quantity: Decimal
    unit_price_cents: int
    size: Decimal | None = None
    dose_name: str | None = None


def parse_order_items(raw: Any) -> list[ItemInput]:
    """
    Validate a full replacement item list for an open tab.

    Every item needs quantity > 0 and unit_price_cents >= 0; the error
    details name the offending index.
    """
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")

    items: list[ItemInput] = []
    for i, entry in enumerate(raw):
        if isinstance(entry, ItemInput):
            entry = {
                "product_id": entry.product_id,
                "name": entry.name,
                "quantity": entry.quantity,
                "unit_price_cents": entry.unit_price_cents,
                "size": entry.size,
                "dose_name": entry.dose_name,
            }
        if not isinstance(entry, dict):
            raise ValidationError("Each item must be an object", details={"index": i})
        try:
            product_id = _coerce_int("product_id", entry.get("product_id"))
            quantity = parse_quantity(entry.get("quantity"), "quantity")
            unit_price = entry.get("unit_price_cents")
            if unit_price is None:
                raise ValidationError("unit_price_cents is required")
            unit_price = _coerce_int("unit_price_cents", unit_price)
            if unit_price < 0:
                raise ValidationError("unit_price_cents must be >= 0")
            size = entry.get("size")
            size = parse_quantity(size, "size") if size is not None else None
        except ValidationError as exc:
            raise ValidationError(exc.message, details={"index": i}) from exc

        name = str(entry.get("name") or "").strip()
        dose_name = entry.get("dose_name")
        items.append(ItemInput(
            product_id=product_id,
            name=name,
            quantity=quantity,
            unit_price_cents=unit_price,
            size=size,
            dose_name=str(dose_name).strip() if dose_name else None,
        ))
    return items
