"""
BestPrice Compare - Comparison Session

Состояние одного экрана сравнения по запросу (inquiry):
офферы → группы, выбор групп, временные цены, количества, замены.

КЛЮЧЕВЫЕ ПРАВИЛА:
1. Единственная async-граница: загрузка офферов/замен и сохранение цены
2. close() (экран закрыт) или более новый load() → результат старой
   загрузки выбрасывается, состояние не трогается
3. submit_price(): повторный вызов для той же (позиция, группа), пока
   первый в полёте, игнорируется; то же значение повторно не отправляется
4. Локальные правки: последняя запись побеждает
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from bestprice_compare.config import Settings, load_settings
from bestprice_compare.coverage import CoverageResult, exclusive_items, order_coverage
from bestprice_compare.exceptions import CollaboratorError, SessionClosedError, UnknownGroupError
from bestprice_compare.models import Item, PriceRow, clean_item_id, normalize_edges, normalize_price_rows
from bestprice_compare.offer_groups import OfferGroup, build_offer_groups, requested_items_from_rows
from bestprice_compare.order_plan import OrderPlan, build_order_plan
from bestprice_compare.pricing import parse_price
from bestprice_compare.references import ReferenceGraph, ReferenceStatus
from bestprice_compare.report import items_frame, suppliers_frame
from bestprice_compare.selection import PriceOverrides, QuantityOverrides, SelectionState
from bestprice_compare import winner

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    """Внешний API-коллаборатор (транспорт вне движка)"""

    async def fetch_best_prices(self, inquiry_id: Any) -> List[Dict[str, Any]]:
        ...

    async def fetch_replacements(self, inquiry_id: Any) -> List[Dict[str, Any]]:
        ...

    async def update_price(
        self,
        inquiry_id: Any,
        item_id: str,
        supplier_id: str,
        promotion_group_id: Optional[str],
        price: float,
    ) -> Any:
        ...


class ComparisonSession:
    """
    Сессия сравнения.

    Все вычисления синхронные и пересчитываются из текущего снапшота
    (rows / selection / overrides) при каждом вызове.
    """

    def __init__(self, inquiry_id: Any, source: PriceSource, settings: Optional[Settings] = None):
        self.inquiry_id = inquiry_id
        self.source = source
        self.settings = settings or load_settings()

        self.rows: List[PriceRow] = []
        self.items: List[Item] = []
        self.groups: Dict[str, OfferGroup] = {}
        self.selection = SelectionState()
        self.overrides = PriceOverrides()
        self.quantities = QuantityOverrides()
        self.references = ReferenceGraph()
        self.replacements_error: Optional[str] = None

        self._generation = 0
        self._closed = False
        self._in_flight: set = set()
        self._persisted: Dict[Tuple[str, str], float] = {}

    # --- lifecycle ---

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Comparison session for inquiry {self.inquiry_id} is closed")

    def close(self) -> None:
        """Уход с экрана: временные цены и количества сбрасываются"""
        if self._closed:
            return
        self._closed = True
        self.overrides.clear()
        self.quantities.clear()
        logger.info(f"Closed comparison session for inquiry {self.inquiry_id}")

    async def load(self) -> bool:
        """
        Загружает офферы и замены.

        Returns: False если результат выброшен (сессия закрыта или
        началась более новая загрузка)
        """
        self._ensure_open()
        self._generation += 1
        generation = self._generation

        try:
            raw_prices = await self.source.fetch_best_prices(self.inquiry_id)
        except Exception as e:
            if self._is_stale(generation):
                return False
            raise CollaboratorError(f"Failed to load comparison data for inquiry {self.inquiry_id}") from e

        if self._is_stale(generation):
            return False

        # Замены необязательны: без них сравнение всё равно показываем
        replacements_error = None
        try:
            raw_edges = await self.source.fetch_replacements(self.inquiry_id)
        except Exception as e:
            logger.warning(f"Failed to load replacements for inquiry {self.inquiry_id}: {e}")
            raw_edges = []
            replacements_error = 'Failed to load replacement items'

        if self._is_stale(generation):
            return False

        self._apply(raw_prices, raw_edges)
        self.replacements_error = replacements_error
        return True

    def _is_stale(self, generation: int) -> bool:
        if self._closed or generation != self._generation:
            logger.info(
                f"Discarding load #{generation} for inquiry {self.inquiry_id} "
                f"(closed={self._closed}, current=#{self._generation})"
            )
            return True
        return False

    def _apply(self, raw_prices: Iterable[Any], raw_edges: Iterable[Any]) -> None:
        default_markup = self.settings.default_import_markup
        rows = [
            row if row.import_markup is not None else row.model_copy(update={'import_markup': default_markup})
            for row in normalize_price_rows(raw_prices)
        ]

        self.rows = rows
        self.items = requested_items_from_rows(rows)
        self.groups = build_offer_groups(rows, self.items)
        self.selection.sync(self.groups.keys())
        self.references = ReferenceGraph(normalize_edges(raw_edges))
        # Свежие цены с сервера
        self._persisted.clear()

        logger.info(
            f"Loaded inquiry {self.inquiry_id}: {len(rows)} price row(s), "
            f"{len(self.items)} item(s), {len(self.groups)} group(s), {len(self.references)} reference(s)"
        )

    # --- user edits ---

    def _item_id(self, item_id: Any) -> str:
        """Id позиции как в загруженных строках (регистр, число/строка, ведущие нули)"""
        if isinstance(item_id, str) and any(item.item_id == item_id for item in self.items):
            return item_id
        return clean_item_id(item_id)

    def _group(self, key: str) -> OfferGroup:
        group = self.groups.get(key)
        if group is None:
            raise UnknownGroupError(key)
        return group

    def toggle_group(self, key: str) -> CoverageResult:
        """Переключает группу и сразу возвращает пересчитанное покрытие"""
        self._ensure_open()
        self._group(key)
        self.selection.toggle(key)
        return self.coverage()

    def set_temporary_price(self, item_id: str, key: str, value: Any) -> Optional[float]:
        self._ensure_open()
        self._group(key)
        item_id = self._item_id(item_id)
        return self.overrides.set(item_id, key, value)

    def set_quantity(self, item_id: str, value: Any) -> int:
        self._ensure_open()
        item_id = self._item_id(item_id)
        return self.quantities.set(item_id, value)

    async def submit_price(self, item_id: str, key: str, value: Any) -> bool:
        """
        Постоянная правка цены через коллаборатора.

        Returns: True если запрос отправлен и успешен;
                 False если не отправлен (дубль в полёте / то же значение / мусор);
                 уже сохранённое значение всё равно становится текущей ценой
        """
        self._ensure_open()
        group = self._group(key)
        item_id = self._item_id(item_id)

        price = parse_price(value)
        if price is None or price <= 0:
            logger.warning(f"Ignoring invalid price {value!r} for {item_id} / {key}")
            return False

        token = (item_id, key)
        if token in self._in_flight:
            logger.debug(f"Price submit for {item_id} / {key} already in flight, ignoring")
            return False
        if self._persisted.get(token) == price:
            logger.debug(f"Price {price} for {item_id} / {key} already persisted")
            self.overrides.set(item_id, key, price)
            return False

        self._in_flight.add(token)
        try:
            await self.source.update_price(
                self.inquiry_id, item_id, group.supplier_id, group.promotion_group_id, price,
            )
        except Exception as e:
            raise CollaboratorError(f"Failed to update price for {item_id} / {key}") from e
        finally:
            self._in_flight.discard(token)

        if self._closed:
            return True

        self._persisted[token] = price
        self.overrides.set(item_id, key, price)
        logger.info(f"Persisted price {price} for {item_id} / {key}")
        return True

    # --- derived views ---

    def coverage(self) -> CoverageResult:
        return order_coverage(self.groups, self.selection, self.items, self.overrides)

    def exclusive_items(self, key: str) -> List[str]:
        return exclusive_items(key, self.groups, self.selection, self.overrides)

    def best_price(self, item_id: str) -> Optional[float]:
        return winner.best_price(self._item_id(item_id), self.groups, self.selection, self.overrides)

    def winning_groups(self, item_id: str) -> List[str]:
        return winner.winning_groups(
            self._item_id(item_id), self.groups, self.selection, self.overrides, self.settings.price_tolerance,
        )

    def is_winning(self, item_id: str, key: str) -> bool:
        group = self._group(key)
        item_id = self._item_id(item_id)
        price = winner.group_effective_price(group, item_id, self.overrides)
        return winner.is_winning(
            price, item_id, self.groups, self.selection, self.overrides, self.settings.price_tolerance,
        )

    def supplier_summary(self, key: str) -> winner.SupplierSummary:
        return winner.supplier_summary(
            self._group(key), self.groups, self.selection, self.overrides,
            self.quantities, self.settings.price_tolerance,
        )

    def visible_items(self, search_query: str = '', discount_filter: Any = None) -> List[Item]:
        threshold = parse_price(discount_filter)
        return winner.filter_items(
            self.items, self.groups, self.selection, self.settings.exchange_rate,
            self.overrides, search_query, threshold,
        )

    def order_plan(self) -> OrderPlan:
        return build_order_plan(
            self.items, self.groups, self.selection, self.overrides,
            self.quantities, self.settings.price_tolerance,
        )

    def items_frame(self):
        return items_frame(
            self.items, self.groups, self.selection, self.settings.exchange_rate,
            self.overrides, self.quantities, self.settings.price_tolerance,
        )

    def suppliers_frame(self):
        return suppliers_frame(
            self.groups, self.selection, self.overrides, self.quantities, self.settings.price_tolerance,
        )

    def resolve_reference(self, item_id: str) -> ReferenceStatus:
        descriptions = {
            item.item_id: item.hebrew_description or item.english_description
            for item in self.items
            if item.hebrew_description or item.english_description
        }
        return self.references.resolve(item_id, descriptions)

    def delete_reference(self, original_item_id: str) -> bool:
        self._ensure_open()
        return self.references.remove(original_item_id) is not None
