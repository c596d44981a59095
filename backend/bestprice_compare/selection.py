"""
BestPrice Compare - Session State

Значения уровня сессии сравнения, передаются в чистые функции явно:
- SelectionState    - какие группы участвуют в сравнении
- PriceOverrides    - временные цены пользователя (what-if)
- QuantityOverrides - отредактированные количества
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple

from bestprice_compare.models import Item
from bestprice_compare.pricing import parse_price

logger = logging.getLogger(__name__)


@dataclass
class SelectionState:
    """
    group_key → bool.

    Первая загрузка офферов: всё выбрано. Дальше переключатели сохраняются:
    новые группы появляются выбранными, исчезнувшие просто игнорируются.
    """
    selected: Dict[str, bool] = field(default_factory=dict)
    initialized: bool = False

    def is_selected(self, key: str) -> bool:
        return self.selected.get(key) is True

    def sync(self, keys: Iterable[str]) -> None:
        """Вызывается при каждой (пере)загрузке групп"""
        keys = list(keys)
        if not self.initialized:
            if not keys:
                return
            self.selected = {key: True for key in keys}
            self.initialized = True
            return
        for key in keys:
            self.selected.setdefault(key, True)

    def toggle(self, key: str) -> bool:
        self.selected[key] = not self.is_selected(key)
        logger.debug(f"Group {key} selected={self.selected[key]}")
        return self.selected[key]

    def set(self, key: str, value: bool) -> None:
        self.selected[key] = bool(value)

    def selected_keys(self, keys: Iterable[str]) -> list:
        """Выбранные среди существующих ключей (устаревшие не попадают)"""
        return [key for key in keys if self.is_selected(key)]

    def as_mapping(self) -> Mapping[str, bool]:
        return dict(self.selected)


@dataclass
class PriceOverrides:
    """Временные цены: (item_id, group_key) → цена. Не сохраняются на сервер."""
    prices: Dict[Tuple[str, str], float] = field(default_factory=dict)

    def set(self, item_id: str, key: str, value) -> Optional[float]:
        """
        Ставит временную цену. Некорректный ввод → 0 (как поле ввода в UI),
        None → снимает override.
        """
        if value is None:
            self.prices.pop((item_id, key), None)
            return None
        price = parse_price(value)
        if price is None:
            price = 0.0
        self.prices[(item_id, key)] = price
        return price

    def clear(self, item_id: Optional[str] = None, key: Optional[str] = None) -> None:
        if item_id is None and key is None:
            self.prices.clear()
            return
        for k in list(self.prices):
            if (item_id is None or k[0] == item_id) and (key is None or k[1] == key):
                del self.prices[k]

    def has(self, item_id: str, key: str) -> bool:
        return (item_id, key) in self.prices

    def get(self, item_id: str, key: str, default: Optional[float] = None) -> Optional[float]:
        return self.prices.get((item_id, key), default)

    def __len__(self) -> int:
        return len(self.prices)


@dataclass
class QuantityOverrides:
    """item_id → количество; иначе requested_qty позиции"""
    quantities: Dict[str, int] = field(default_factory=dict)

    def set(self, item_id: str, value) -> int:
        qty = parse_price(value)
        if qty is None or qty < 0:
            qty = 0
        self.quantities[item_id] = int(qty)
        return self.quantities[item_id]

    def clear(self) -> None:
        self.quantities.clear()

    def quantity_for(self, item: Item) -> int:
        return self.quantities.get(item.item_id, item.requested_qty)

    def quantity_for_id(self, item_id: str, default: int = 0) -> int:
        return self.quantities.get(item_id, default)
