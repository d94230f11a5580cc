from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

_log = logging.getLogger("feteer.pricing")

ADDITIONAL_MEAT_PRICE = 2.0
EXTRA_NUTELLA_PRICE = 2.0


def parse_sweet_selections(raw: Any) -> dict[str, int]:
    """
    Normalise sweet selections to {name: qty}.

    Accepts the JSON string the counter UI sends or an already decoded
    mapping. Raises ValueError for anything else.
    """
    if raw is None or raw == "":
        return {}
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, Mapping):
        raise ValueError("sweet_selections must be an object of name -> quantity")
    out: dict[str, int] = {}
    for name, qty in data.items():
        if isinstance(qty, bool) or not isinstance(qty, (int, float)):
            continue
        out[str(name)] = int(qty)
    return out


def order_price(
    item_type: str,
    feteer_prices: Mapping[str, float],
    sweet_prices: Mapping[str, float],
    feteer_type: Optional[str] = None,
    sweet_type: Optional[str] = None,
    sweet_selections: Any = None,
    additional_meats: int = 0,
    extra_nutella: bool = False,
) -> float:
    price = 0.0
    if item_type == "feteer":
        price += float(feteer_prices.get(feteer_type or "", 0.0) or 0.0)
        price += max(0, additional_meats) * ADDITIONAL_MEAT_PRICE
        if extra_nutella:
            price += EXTRA_NUTELLA_PRICE
    elif item_type == "sweet":
        if sweet_selections:
            try:
                selections = parse_sweet_selections(sweet_selections)
            except ValueError as e:
                _log.error("error parsing sweet_selections: %s", e)
                selections = {}
            for name, qty in selections.items():
                unit = sweet_prices.get(name)
                if unit and qty > 0:
                    price += float(unit) * qty
        elif sweet_type:
            price += float(sweet_prices.get(sweet_type, 0.0) or 0.0)
    return round(price, 2)
