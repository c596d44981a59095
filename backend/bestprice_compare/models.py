"""
BestPrice Compare - Data Models

Записи от внешнего API-коллаборатора (граница движка):
- Item (позиция запроса / каталога)
- PriceRow (оффер поставщика по одной позиции, regular или акция)
- ReplacementEdge (замена артикула: original → new)
- SupplierResponseSummary (сводка ответа поставщика)

Нормализация делается ОДИН раз здесь: дефолты, None, десятичная запятая,
чистка item_id. Дальше логика не проверяет "строка это или число".
"""

import json
import logging
import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from bestprice_compare.pricing import parse_price

logger = logging.getLogger(__name__)


# === ENUMS ===

class ReferenceSource(str, Enum):
    SUPPLIER = "supplier"
    USER = "user"


# === ITEM ID ===

_LEADING_ZEROS = re.compile(r'^0000(?=\d)')


def clean_item_id(value: Any) -> str:
    """
    Приводит артикул к каноническому виду.

    - убирает точки и пробелы
    - снимает РОВНО 4 ведущих нуля ("00001109AL" -> "1109AL")
    - upper case

    "0111AT" остаётся "0111AT". Числа 1109.0 -> "1109".
    """
    if value is None or isinstance(value, bool):
        return ''
    if isinstance(value, float):
        if not math.isfinite(value):
            return ''
        if value.is_integer():
            value = int(value)
    cleaned = str(value).replace('.', '')
    cleaned = re.sub(r'\s+', '', cleaned)
    cleaned = _LEADING_ZEROS.sub('', cleaned)
    return cleaned.upper()


# === HELPERS ===

def required_item_id(value: Any) -> str:
    cleaned = clean_item_id(value)
    if not cleaned:
        raise ValueError('item id is empty')
    return cleaned


def optional_number(value: Any) -> Optional[float]:
    return parse_price(value)


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def positive_markup(value: Any) -> Optional[float]:
    markup = parse_price(value)
    if markup is None or markup <= 0:
        return None
    return markup


def non_negative_int(value: Any) -> Optional[int]:
    number = parse_price(value)
    if number is None or number < 0:
        return None
    return int(number)


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y')
    return bool(value)


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# === ITEM ===

class Item(BaseModel):
    """Позиция запроса (что хотим купить)"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    item_id: str = Field(validation_alias=_aliases('item_id', 'ItemID', 'itemID', 'itemId'))
    hebrew_description: str = Field(
        default='', validation_alias=_aliases('hebrew_description', 'HebrewDescription', 'hebrewDescription'))
    english_description: str = Field(
        default='', validation_alias=_aliases('english_description', 'EnglishDescription', 'englishDescription'))
    retail_price: Optional[float] = Field(
        default=None, validation_alias=_aliases('retail_price', 'RetailPrice', 'retailPrice'))
    import_markup: Optional[float] = Field(
        default=None, validation_alias=_aliases('import_markup', 'ImportMarkup', 'importMarkup'))
    requested_qty: int = Field(
        default=0, validation_alias=_aliases('requested_qty', 'RequestedQty', 'requestedQty'))
    # Информационные поля
    qty_in_stock: Optional[float] = Field(
        default=None, validation_alias=_aliases('qty_in_stock', 'QtyInStock', 'qtyInStock'))
    sold_this_year: Optional[float] = Field(
        default=None, validation_alias=_aliases('sold_this_year', 'SoldThisYear', 'soldThisYear'))
    sold_last_year: Optional[float] = Field(
        default=None, validation_alias=_aliases('sold_last_year', 'SoldLastYear', 'soldLastYear'))

    @field_validator('item_id', mode='before')
    @classmethod
    def check_item_id(cls, value):
        return required_item_id(value)

    @field_validator('hebrew_description', 'english_description', mode='before')
    @classmethod
    def check_description(cls, value):
        return optional_text(value) or ''

    @field_validator('retail_price', 'qty_in_stock', 'sold_this_year', 'sold_last_year', mode='before')
    @classmethod
    def check_number(cls, value):
        return optional_number(value)

    @field_validator('import_markup', mode='before')
    @classmethod
    def check_markup(cls, value):
        return positive_markup(value)

    @field_validator('requested_qty', mode='before')
    @classmethod
    def check_qty(cls, value):
        return non_negative_int(value) or 0


# === PRICE ROW ===

class PriceRow(BaseModel):
    """
    Оффер поставщика по одной позиции.

    price_quoted = None означает "нет предложения".
    Ключ группы: supplier_id + ('regular' | promotion_group_id).
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    item_id: str = Field(validation_alias=_aliases('item_id', 'ItemID', 'itemID', 'itemId'))
    supplier_id: Optional[str] = Field(
        default=None, validation_alias=_aliases('supplier_id', 'SupplierID', 'supplierId'))
    supplier_name: str = Field(
        default='', validation_alias=_aliases('supplier_name', 'SupplierName', 'supplierName'))
    price_quoted: Optional[float] = Field(
        default=None, validation_alias=_aliases('price_quoted', 'PriceQuoted', 'priceQuoted'))
    import_markup: Optional[float] = Field(
        default=None, validation_alias=_aliases('import_markup', 'ImportMarkup', 'importMarkup'))
    retail_price: Optional[float] = Field(
        default=None, validation_alias=_aliases('retail_price', 'RetailPrice', 'retailPrice'))
    is_promotion: bool = Field(
        default=False, validation_alias=_aliases('is_promotion', 'IsPromotion', 'isPromotion'))
    promotion_group_id: Optional[str] = Field(
        default=None, validation_alias=_aliases('promotion_group_id', 'PromotionGroupID', 'promotionGroupId'))
    promotion_name: Optional[str] = Field(
        default=None, validation_alias=_aliases('promotion_name', 'PromotionName', 'promotionName'))
    # Для отображения
    hebrew_description: str = Field(
        default='', validation_alias=_aliases('hebrew_description', 'HebrewDescription', 'hebrewDescription'))
    english_description: str = Field(
        default='', validation_alias=_aliases('english_description', 'EnglishDescription', 'englishDescription'))
    requested_qty: int = Field(
        default=0, validation_alias=_aliases('requested_qty', 'RequestedQty', 'requestedQty'))

    @field_validator('item_id', mode='before')
    @classmethod
    def check_item_id(cls, value):
        return required_item_id(value)

    @field_validator('supplier_id', 'promotion_group_id', 'promotion_name', mode='before')
    @classmethod
    def check_optional_text(cls, value):
        return optional_text(value)

    @field_validator('supplier_name', 'hebrew_description', 'english_description', mode='before')
    @classmethod
    def check_text(cls, value):
        return optional_text(value) or ''

    @field_validator('price_quoted', 'retail_price', mode='before')
    @classmethod
    def check_number(cls, value):
        return optional_number(value)

    @field_validator('import_markup', mode='before')
    @classmethod
    def check_markup(cls, value):
        return positive_markup(value)

    @field_validator('requested_qty', mode='before')
    @classmethod
    def check_qty(cls, value):
        return non_negative_int(value) or 0

    @field_validator('is_promotion', mode='before')
    @classmethod
    def check_promotion_flag(cls, value):
        return as_flag(value)

    def as_item(self) -> Item:
        return Item(
            item_id=self.item_id,
            hebrew_description=self.hebrew_description,
            english_description=self.english_description,
            retail_price=self.retail_price,
            import_markup=self.import_markup,
            requested_qty=self.requested_qty,
        )


# === REPLACEMENT EDGE ===

class ReplacementEdge(BaseModel):
    """original_item_id заменён на new_reference_id"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    original_item_id: str = Field(
        validation_alias=_aliases('original_item_id', 'originalItemId', 'originalItemID'))
    new_reference_id: str = Field(
        validation_alias=_aliases('new_reference_id', 'newReferenceId', 'newReferenceID', 'newItemId'))
    source: ReferenceSource = ReferenceSource.USER
    supplier_name: Optional[str] = Field(
        default=None, validation_alias=_aliases('supplier_name', 'supplierName'))
    change_date: Optional[datetime] = Field(
        default=None, validation_alias=_aliases('change_date', 'changeDate'))
    notes: Optional[str] = Field(default=None, validation_alias=_aliases('notes', 'description'))
    original_description: Optional[str] = Field(
        default=None, validation_alias=_aliases('original_description', 'originalDescription'))
    new_description: Optional[str] = Field(
        default=None, validation_alias=_aliases('new_description', 'newDescription'))

    @field_validator('original_item_id', 'new_reference_id', mode='before')
    @classmethod
    def check_item_id(cls, value):
        return required_item_id(value)

    @field_validator('supplier_name', 'notes', 'original_description', 'new_description', mode='before')
    @classmethod
    def check_text(cls, value):
        return optional_text(value)

    @field_validator('change_date', mode='before')
    @classmethod
    def check_date(cls, value):
        if value is None or value == '':
            return None
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                logger.warning(f"Unparseable change_date {value!r}, ignoring")
                return None
        return value

    @model_validator(mode='before')
    @classmethod
    def infer_source(cls, data):
        if not isinstance(data, dict):
            return data
        source = data.get('source')
        if isinstance(source, str) and source.strip().lower() in ('supplier', 'user'):
            return {**data, 'source': source.strip().lower()}
        # Источник не указан: есть поставщик → supplier
        supplier_name = data.get('supplier_name') or data.get('supplierName')
        inferred = ReferenceSource.SUPPLIER if supplier_name else ReferenceSource.USER
        return {**data, 'source': inferred}

    @property
    def attribution(self) -> str:
        if self.source == ReferenceSource.SUPPLIER and self.supplier_name:
            return self.supplier_name
        return ReferenceSource.USER.value


# === SUPPLIER RESPONSE ===

class SupplierResponseSummary(BaseModel):
    """Сводка ответа поставщика по запросу"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    supplier_id: str = Field(validation_alias=_aliases('supplier_id', 'supplierId', 'SupplierID'))
    supplier_name: str = Field(
        default='', validation_alias=_aliases('supplier_name', 'supplierName', 'SupplierName'))
    total_items: Optional[int] = Field(
        default=None, validation_alias=_aliases('total_items', 'totalItems', 'total_expected_items'))
    missing_count: Optional[int] = Field(
        default=None, validation_alias=_aliases('missing_count', 'missingCount'))
    missing_items: List[Item] = Field(
        default_factory=list, validation_alias=_aliases('missing_items', 'missingItems'))
    responses: List[PriceRow] = Field(default_factory=list)

    @field_validator('supplier_id', mode='before')
    @classmethod
    def check_supplier_id(cls, value):
        supplier_id = optional_text(value)
        if supplier_id is None:
            raise ValueError('supplier_id is empty')
        return supplier_id

    @field_validator('supplier_name', mode='before')
    @classmethod
    def check_supplier_name(cls, value):
        return optional_text(value) or ''

    @field_validator('total_items', 'missing_count', mode='before')
    @classmethod
    def check_count(cls, value):
        return non_negative_int(value)

    @field_validator('missing_items', mode='before')
    @classmethod
    def check_missing_items(cls, value):
        return normalize_items(decode_list(value))

    @field_validator('responses', mode='before')
    @classmethod
    def check_responses(cls, value):
        return normalize_price_rows(decode_list(value))


# === NORMALIZATION ===

def decode_list(raw: Any) -> list:
    """Список, JSON-строка со списком или мусор → list"""
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Malformed JSON list payload, treating as empty")
            return []
    if isinstance(raw, (list, tuple)):
        return [entry for entry in raw if entry]
    return []


def _normalize(model, raw_rows: Optional[Iterable[Any]], kind: str) -> list:
    result = []
    skipped = 0
    for raw in raw_rows or []:
        if isinstance(raw, model):
            result.append(raw)
            continue
        try:
            result.append(model.model_validate(raw))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Skipping malformed {kind}: {e.errors()[:1]}")
    if skipped:
        logger.warning(f"Skipped {skipped} malformed {kind} record(s)")
    return result


def normalize_items(raw_items: Optional[Iterable[Any]]) -> List[Item]:
    return _normalize(Item, raw_items, 'item')


def normalize_price_rows(raw_rows: Optional[Iterable[Any]]) -> List[PriceRow]:
    return _normalize(PriceRow, raw_rows, 'price row')


def normalize_edges(raw_edges: Optional[Iterable[Any]]) -> List[ReplacementEdge]:
    return _normalize(ReplacementEdge, raw_edges, 'replacement edge')


def normalize_responses(raw: Optional[Iterable[Any]]) -> List[SupplierResponseSummary]:
    return _normalize(SupplierResponseSummary, raw, 'supplier response')
