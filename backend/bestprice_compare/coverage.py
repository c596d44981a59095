"""
BestPrice Compare - Coverage Reconciliation

Два уровня:
1. По поставщику: какие ожидаемые позиции поставщик не прислал
2. По заказу (выбранные группы вместе): covered = есть цена хотя бы в одной
   выбранной группе, missing = expected - covered

Инварианты (для любого выбора):
- covered ∪ missing == expected
- covered ∩ missing == ∅

Сравнение item_id нечувствительно к регистру и типу (число/строка):
все ключи проходят через clean_item_id до операций над множествами.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from bestprice_compare.models import Item, SupplierResponseSummary, clean_item_id, normalize_items
from bestprice_compare.offer_groups import OfferGroup
from bestprice_compare.selection import PriceOverrides
from bestprice_compare.winner import Selection, group_effective_price, is_selected

logger = logging.getLogger(__name__)

ItemRef = Union[Item, str, int, float]


def item_key(ref: ItemRef) -> str:
    if isinstance(ref, Item):
        return ref.item_id
    return clean_item_id(ref)


def _unique_keys(refs: Iterable[ItemRef]) -> List[str]:
    """Ключи без дублей в исходном порядке, пустые отбрасываются"""
    seen = set()
    keys = []
    for ref in refs or []:
        key = item_key(ref)
        if key and key not in seen:
            seen.add(key)
            keys.append(key)
    return keys


# === PER SUPPLIER ===

@dataclass
class SupplierCoverage:
    supplier_id: str
    supplier_name: str
    total_expected_items: int
    responded_item_count: int
    missing_items: List[Item] = field(default_factory=list)
    missing_count: int = 0

    @property
    def is_complete(self) -> bool:
        return self.missing_count == 0


def _dedupe_items(items: Iterable[Item]) -> List[Item]:
    seen = {}
    for item in items:
        seen.setdefault(item.item_id, item)
    return list(seen.values())


def supplier_missing_items(
    summary: SupplierResponseSummary,
    expected_items: Sequence[Item],
) -> SupplierCoverage:
    """
    Позиции запроса без цены от этого поставщика.

    missing_count от коллаборатора авторитетный, если есть;
    иначе считается разностью множеств.
    """
    expected = _dedupe_items(expected_items)
    responded = {
        row.item_id for row in summary.responses
        if row.price_quoted is not None
    }
    responded_count = sum(1 for item in expected if item.item_id in responded)

    if summary.missing_items:
        missing = _dedupe_items(summary.missing_items)
    else:
        missing = [item for item in expected if item.item_id not in responded]

    if summary.missing_count is not None:
        missing_count = summary.missing_count
        if missing_count != len(missing):
            logger.debug(
                f"Supplier {summary.supplier_id}: reported missing_count={missing_count}, "
                f"derived {len(missing)}"
            )
    else:
        missing_count = len(missing)

    total = summary.total_items if summary.total_items is not None else len(expected)

    return SupplierCoverage(
        supplier_id=summary.supplier_id,
        supplier_name=summary.supplier_name,
        total_expected_items=total,
        responded_item_count=responded_count,
        missing_items=missing,
        missing_count=missing_count,
    )


def supplier_coverage_from_groups(
    supplier_id: str,
    groups: Mapping[str, OfferGroup],
    expected_items: Sequence[Item],
) -> SupplierCoverage:
    """
    Покрытие поставщика по всем его группам (прайс + активные акции).
    Позиция покрыта, если хоть одна группа поставщика даёт цену.
    """
    supplier_groups = [g for g in groups.values() if g.supplier_id == supplier_id]
    covered = set()
    for group in supplier_groups:
        covered.update(group.priced_item_ids())

    expected = _dedupe_items(expected_items)
    missing = [item for item in expected if item.item_id not in covered]
    return SupplierCoverage(
        supplier_id=supplier_id,
        supplier_name=supplier_groups[0].supplier_name if supplier_groups else '',
        total_expected_items=len(expected),
        responded_item_count=len(expected) - len(missing),
        missing_items=missing,
        missing_count=len(missing),
    )


@dataclass
class MissingItems:
    items: List[Item]
    count: int


def parse_missing_items(raw: Any, supplier_id: Optional[str] = None) -> MissingItems:
    """
    Читает missing items в любом из форматов коллаборатора:
    - список записей
    - JSON-строка со списком
    - {'supplierSpecificMissing': [{'supplier_id', 'items', 'missingCount'}, ...]}

    Мусор → пусто, без исключений.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Could not decode missing items payload")
            return MissingItems(items=[], count=0)

    if isinstance(raw, dict) and isinstance(raw.get('supplierSpecificMissing'), list):
        entries = [e for e in raw['supplierSpecificMissing'] if isinstance(e, dict)]
        if supplier_id is not None:
            entry = next((e for e in entries if str(e.get('supplier_id')) == str(supplier_id)), None)
        else:
            entry = entries[0] if entries else None
        if entry is None:
            return MissingItems(items=[], count=0)
        items = normalize_items(entry.get('items') or [])
        count = entry.get('missingCount')
        return MissingItems(items=items, count=count if isinstance(count, int) else len(items))

    if isinstance(raw, (list, tuple)):
        items = _dedupe_items(normalize_items([entry for entry in raw if entry]))
        return MissingItems(items=items, count=len(items))

    return MissingItems(items=[], count=0)


# === ORDER LEVEL ===

@dataclass
class CoverageResult:
    covered: List[str]
    missing: List[str]

    @property
    def covered_count(self) -> int:
        return len(self.covered)

    @property
    def missing_count(self) -> int:
        return len(self.missing)

    @property
    def total(self) -> int:
        return len(self.covered) + len(self.missing)


def covered_item_keys(
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
) -> set:
    """Все позиции с ненулевой (не None) эффективной ценой в выбранных группах"""
    covered = set()
    for key, group in groups.items():
        if not is_selected(selection, key):
            continue
        for row in group.items:
            if group_effective_price(group, row.item_id, overrides) is not None:
                covered.add(item_key(row.item_id))
    return covered


def order_coverage(
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    expected_items: Iterable[ItemRef],
    overrides: Optional[PriceOverrides] = None,
) -> CoverageResult:
    """
    Покрытие заказа выбранными группами.

    Чистая функция: пересчитывается при каждом переключении группы,
    не только при загрузке данных.
    """
    expected = _unique_keys(expected_items)
    covered_keys = covered_item_keys(groups, selection, overrides)

    covered = [key for key in expected if key in covered_keys]
    missing = [key for key in expected if key not in covered_keys]
    return CoverageResult(covered=covered, missing=missing)


def exclusive_items(
    key: str,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
) -> List[str]:
    """
    Позиции, которые покрывает ТОЛЬКО эта группа среди выбранных.
    Ровно они уйдут в missing, если группу снять.
    """
    group = groups.get(key)
    if group is None:
        return []

    others = {
        k: g for k, g in groups.items()
        if k != key and is_selected(selection, k)
    }
    covered_by_others = covered_item_keys(others, {k: True for k in others}, overrides)
    return [
        row.item_id for row in group.items
        if group_effective_price(group, row.item_id, overrides) is not None
        and item_key(row.item_id) not in covered_by_others
    ]
