"""
BestPrice Compare - Order Plan

Распределение заказа по поставщикам из текущего сравнения
(кнопка "Create orders"): каждая позиция уходит победившей группе.

Ключевые правила:
1. Участвуют только выбранные группы, цена = эффективная (с override)
2. Ничья в пределах допуска → первая группа в порядке групп (флаг TIE_BROKEN)
3. Количество = отредактированное, иначе requested_qty; qty=0 не заказываем
4. Позиции без победителя → unmatched_items
5. Один заказ на поставщика (прайс и акции поставщика объединяются)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from bestprice_compare.config import PRICE_TOLERANCE
from bestprice_compare.models import Item
from bestprice_compare.offer_groups import OfferGroup
from bestprice_compare.selection import PriceOverrides, QuantityOverrides
from bestprice_compare.winner import Selection, group_effective_price, winning_groups

logger = logging.getLogger(__name__)


class PlanFlag(str, Enum):
    """Флаги строки плана для UI"""
    TIE_BROKEN = "TIE_BROKEN"              # Несколько победителей, выбран первый
    PRICE_OVERRIDDEN = "PRICE_OVERRIDDEN"  # Цена из временного override
    PROMOTION_PRICE = "PROMOTION_PRICE"    # Победила акция


@dataclass
class PlanLine:
    """Строка плана заказа"""
    item_id: str
    description: str
    group_key: str
    unit_price: float
    qty: int
    line_total: float
    flags: List[str] = field(default_factory=list)


@dataclass
class SupplierPlan:
    """План по одному поставщику"""
    supplier_id: str
    supplier_name: str
    lines: List[PlanLine] = field(default_factory=list)
    subtotal: float = 0.0


@dataclass
class OrderPlan:
    suppliers: List[SupplierPlan] = field(default_factory=list)
    total: float = 0.0
    unmatched_items: List[str] = field(default_factory=list)
    skipped_zero_qty: List[str] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        return sum(len(s.lines) for s in self.suppliers)

    def to_dict(self) -> Dict:
        return {
            'suppliers': [
                {
                    'supplier_id': s.supplier_id,
                    'supplier_name': s.supplier_name,
                    'subtotal': round(s.subtotal, 2),
                    'lines': [
                        {
                            'item_id': l.item_id,
                            'group_key': l.group_key,
                            'unit_price': l.unit_price,
                            'qty': l.qty,
                            'line_total': round(l.line_total, 2),
                            'flags': l.flags,
                        }
                        for l in s.lines
                    ],
                }
                for s in self.suppliers
            ],
            'total': round(self.total, 2),
            'unmatched_items': self.unmatched_items,
            'skipped_zero_qty': self.skipped_zero_qty,
        }


def build_order_plan(
    items: Sequence[Item],
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    quantities: Optional[QuantityOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> OrderPlan:
    """
    Строит план заказа.

    Returns:
        OrderPlan: поставщики в порядке первой победы, строки в порядке items
    """
    plan = OrderPlan()
    by_supplier: Dict[str, SupplierPlan] = {}

    for item in items:
        qty = quantities.quantity_for(item) if quantities else item.requested_qty
        if qty <= 0:
            plan.skipped_zero_qty.append(item.item_id)
            continue

        winners = winning_groups(item.item_id, groups, selection, overrides, tolerance)
        if not winners:
            plan.unmatched_items.append(item.item_id)
            continue

        group = groups[winners[0]]
        price = group_effective_price(group, item.item_id, overrides)

        flags = []
        if len(winners) > 1:
            flags.append(PlanFlag.TIE_BROKEN.value)
        if overrides is not None and overrides.has(item.item_id, group.key):
            flags.append(PlanFlag.PRICE_OVERRIDDEN.value)
        if group.is_promotion:
            flags.append(PlanFlag.PROMOTION_PRICE.value)

        line = PlanLine(
            item_id=item.item_id,
            description=item.hebrew_description or item.english_description,
            group_key=group.key,
            unit_price=price,
            qty=qty,
            line_total=price * qty,
            flags=flags,
        )

        supplier_plan = by_supplier.get(group.supplier_id)
        if supplier_plan is None:
            supplier_plan = SupplierPlan(supplier_id=group.supplier_id, supplier_name=group.supplier_name)
            by_supplier[group.supplier_id] = supplier_plan
            plan.suppliers.append(supplier_plan)
        supplier_plan.lines.append(line)
        supplier_plan.subtotal += line.line_total

    plan.total = sum(s.subtotal for s in plan.suppliers)

    logger.info(
        f"Order plan: {len(plan.suppliers)} supplier(s), {plan.line_count} line(s), "
        f"total={plan.total:.2f}, unmatched={len(plan.unmatched_items)}"
    )
    return plan
