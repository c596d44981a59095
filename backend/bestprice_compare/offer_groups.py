"""
BestPrice Compare - Offer Grouping

Разбивает плоский список офферов на группы поставщика:
- прайс поставщика:        "{supplier_id}-regular"
- конкретная акция:        "{supplier_id}-{promotion_group_id}"
- акция без promotion_group_id: "{supplier_id}-promotion"

Ключевые правила:
1. Каждая группа содержит КАЖДУЮ запрошенную позицию ровно один раз
   (нет оффера → синтетическая строка с price_quoted=None)
2. Группы пересобираются целиком при любом изменении списка офферов
3. Строки без supplier_id игнорируются
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from bestprice_compare.models import Item, PriceRow

logger = logging.getLogger(__name__)

REGULAR = "regular"
PROMOTION = "promotion"  # акция без promotion_group_id


def group_key(supplier_id: str, promotion_group_id: Optional[str] = None) -> str:
    """Ключ группы в формате UI: '<supplier>-regular' | '<supplier>-<promotion>'"""
    return f"{supplier_id}-{promotion_group_id if promotion_group_id is not None else REGULAR}"


def row_group_key(row: PriceRow) -> Optional[str]:
    if row.supplier_id is None:
        return None
    if row.is_promotion:
        return group_key(row.supplier_id, row.promotion_group_id or PROMOTION)
    return group_key(row.supplier_id)


@dataclass
class OfferGroup:
    """Прайс поставщика или одна его акция (единица выбора)"""
    key: str
    supplier_id: str
    supplier_name: str
    is_promotion: bool = False
    promotion_group_id: Optional[str] = None
    promotion_name: Optional[str] = None
    items: List[PriceRow] = field(default_factory=list)
    _by_item: Dict[str, PriceRow] = field(default_factory=dict, repr=False)

    @property
    def label(self) -> str:
        if self.is_promotion:
            return f"{self.supplier_name} ({self.promotion_name or self.promotion_group_id or PROMOTION})"
        return self.supplier_name

    def row_for(self, item_id: str) -> Optional[PriceRow]:
        return self._by_item.get(item_id)

    def quoted_price(self, item_id: str) -> Optional[float]:
        row = self._by_item.get(item_id)
        return row.price_quoted if row is not None else None

    def priced_item_ids(self) -> List[str]:
        return [row.item_id for row in self.items if row.price_quoted is not None]


def _placeholder_row(group: OfferGroup, item: Item) -> PriceRow:
    """Строка "нет цены" с метаданными группы"""
    return PriceRow(
        item_id=item.item_id,
        supplier_id=group.supplier_id,
        supplier_name=group.supplier_name,
        price_quoted=None,
        import_markup=item.import_markup,
        retail_price=item.retail_price,
        is_promotion=group.is_promotion,
        promotion_group_id=group.promotion_group_id,
        promotion_name=group.promotion_name,
        hebrew_description=item.hebrew_description,
        english_description=item.english_description,
        requested_qty=item.requested_qty,
    )


def requested_items_from_rows(rows: Iterable[PriceRow]) -> List[Item]:
    """Уникальные позиции в порядке первого появления"""
    seen = {}
    for row in rows:
        if row.item_id not in seen:
            seen[row.item_id] = row.as_item()
    return list(seen.values())


def build_offer_groups(
    quotes: Sequence[PriceRow],
    requested_items: Optional[Sequence[Item]] = None,
) -> Dict[str, OfferGroup]:
    """
    Строит группы офферов.

    Args:
        quotes: нормализованные PriceRow
        requested_items: позиции запроса; если None, берутся из quotes

    Returns:
        {group_key: OfferGroup} в порядке первого появления группы
    """
    if requested_items is None:
        requested_items = requested_items_from_rows(quotes)

    # 1. Набор групп + индекс (item, group) → оффер
    groups: Dict[str, OfferGroup] = {}
    matched: Dict[Tuple[str, str], PriceRow] = {}
    orphan_rows = 0

    for row in quotes:
        key = row_group_key(row)
        if key is None:
            orphan_rows += 1
            continue

        if key not in groups:
            groups[key] = OfferGroup(
                key=key,
                supplier_id=row.supplier_id,
                supplier_name=row.supplier_name,
                is_promotion=row.is_promotion,
                promotion_group_id=row.promotion_group_id if row.is_promotion else None,
                promotion_name=row.promotion_name if row.is_promotion else None,
            )
        elif not groups[key].supplier_name and row.supplier_name:
            groups[key].supplier_name = row.supplier_name

        # Первая строка с ценой побеждает (коллаборатор отдаёт свежие первыми)
        existing = matched.get((row.item_id, key))
        if existing is None or (existing.price_quoted is None and row.price_quoted is not None):
            matched[(row.item_id, key)] = row

    if orphan_rows:
        logger.debug(f"Ignored {orphan_rows} price row(s) without supplier_id")

    # 2. Каждая группа × каждая позиция
    seen_items = set()
    unique_items = []
    for item in requested_items:
        if item.item_id in seen_items:
            continue
        seen_items.add(item.item_id)
        unique_items.append(item)

    for key, group in groups.items():
        for item in unique_items:
            row = matched.get((item.item_id, key))
            if row is None:
                row = _placeholder_row(group, item)
            group.items.append(row)
            group._by_item[item.item_id] = row

    logger.debug(f"Built {len(groups)} offer group(s) over {len(unique_items)} item(s)")
    return groups
