"""
BestPrice Compare - Replacement Chain Resolution

ReferenceChange: original_item_id → new_reference_id (артикул заменён).

Состояния позиции (взаимоисключающие для отображения):
- PLAIN       - нет ни исходящей, ни входящих замен
- SUPERSEDED  - "старая позиция": есть исходящая замена (показываем преемника)
- SUCCESSOR   - "новая позиция": есть ≥1 входящая замена (показываем предшественников)

Разрешение: ОДИН шаг по графу. Преемник преемника виден только при
повторной навигации. follow_chain(): отдельный многошаговый обход с
защитой от циклов.

Несогласованные данные (дубль исходящей замены, ссылка на несуществующую
позицию, self-reference) логируются и не блокируют отображение.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bestprice_compare.models import ReferenceSource, ReplacementEdge, clean_item_id, normalize_edges

logger = logging.getLogger(__name__)


class ReferenceState(str, Enum):
    PLAIN = "plain"
    SUPERSEDED = "superseded"
    SUCCESSOR = "successor"


@dataclass
class ReferenceLink:
    """Соседняя позиция для отображения и навигации"""
    item_id: str
    description: Optional[str]
    source: ReferenceSource
    attribution: str
    change_date: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass
class ReferenceStatus:
    item_id: str
    state: ReferenceState
    successor: Optional[ReferenceLink] = None
    predecessors: List[ReferenceLink] = field(default_factory=list)

    @property
    def predecessor_ids(self) -> List[str]:
        return [link.item_id for link in self.predecessors]

    @property
    def successor_id(self) -> Optional[str]:
        return self.successor.item_id if self.successor else None


class ReferenceGraph:
    """
    Набор замен. Инвариант: у позиции не больше одной исходящей замены,
    входящих может быть сколько угодно (несколько старых → одна новая).
    """

    def __init__(self, edges: Optional[Iterable[ReplacementEdge]] = None):
        self._outgoing: Dict[str, ReplacementEdge] = {}
        self._incoming: Dict[str, List[ReplacementEdge]] = {}
        for edge in edges or []:
            self.add(edge)

    @classmethod
    def from_raw(cls, raw_edges: Optional[Iterable[Any]]) -> "ReferenceGraph":
        return cls(normalize_edges(raw_edges))

    # --- mutation ---

    def add(self, edge: ReplacementEdge) -> bool:
        """
        Добавляет замену. Дубль исходящей: последняя запись побеждает.
        Returns: False если замена отброшена (self-reference)
        """
        if edge.original_item_id == edge.new_reference_id:
            logger.warning(f"Dropping self-reference for item {edge.original_item_id}")
            return False

        previous = self._outgoing.get(edge.original_item_id)
        if previous is not None:
            logger.warning(
                f"Duplicate outgoing reference for {edge.original_item_id}: "
                f"{previous.new_reference_id} replaced by {edge.new_reference_id}"
            )
            self._detach_incoming(previous)

        self._outgoing[edge.original_item_id] = edge
        self._incoming.setdefault(edge.new_reference_id, []).append(edge)
        return True

    def remove(self, original_item_id: Any) -> Optional[ReplacementEdge]:
        """Удаление замены пользователем. Затрагивает только концы этой замены."""
        edge = self._outgoing.pop(clean_item_id(original_item_id), None)
        if edge is None:
            return None
        self._detach_incoming(edge)
        logger.info(f"Removed reference {edge.original_item_id} -> {edge.new_reference_id}")
        return edge

    def _detach_incoming(self, edge: ReplacementEdge) -> None:
        incoming = self._incoming.get(edge.new_reference_id, [])
        remaining = [e for e in incoming if e is not edge]
        if remaining:
            self._incoming[edge.new_reference_id] = remaining
        else:
            self._incoming.pop(edge.new_reference_id, None)

    # --- lookup ---

    @property
    def edges(self) -> List[ReplacementEdge]:
        return list(self._outgoing.values())

    def successor_edge(self, item_id: Any) -> Optional[ReplacementEdge]:
        return self._outgoing.get(clean_item_id(item_id))

    def predecessor_edges(self, item_id: Any) -> List[ReplacementEdge]:
        return list(self._incoming.get(clean_item_id(item_id), []))

    def resolve(self, item_id: Any, descriptions: Optional[Mapping[str, str]] = None) -> ReferenceStatus:
        """
        Один шаг по графу.

        descriptions: item_id → описание для позиций, у которых замена не
        несёт своего описания. Нет описания → показываем сырой id.

        Позиция одновременно старая и новая (A→B, B→C для B) отображается
        как SUPERSEDED, предшественники всё равно перечисляются.
        """
        key = clean_item_id(item_id)
        descriptions = descriptions or {}

        outgoing = self._outgoing.get(key)
        incoming = self._incoming.get(key, [])

        successor = None
        if outgoing is not None:
            successor = ReferenceLink(
                item_id=outgoing.new_reference_id,
                description=outgoing.new_description or descriptions.get(outgoing.new_reference_id),
                source=outgoing.source,
                attribution=outgoing.attribution,
                change_date=outgoing.change_date,
                notes=outgoing.notes,
            )

        predecessors = [
            ReferenceLink(
                item_id=edge.original_item_id,
                description=edge.original_description or descriptions.get(edge.original_item_id),
                source=edge.source,
                attribution=edge.attribution,
                change_date=edge.change_date,
                notes=edge.notes,
            )
            for edge in incoming
        ]

        if successor is not None:
            state = ReferenceState.SUPERSEDED
        elif predecessors:
            state = ReferenceState.SUCCESSOR
        else:
            state = ReferenceState.PLAIN

        return ReferenceStatus(item_id=key, state=state, successor=successor, predecessors=predecessors)

    def follow_chain(self, item_id: Any) -> List[str]:
        """
        Многошаговый обход: [item, successor, successor's successor, ...].
        Цикл обрывается на первой повторной позиции (warning).
        """
        key = clean_item_id(item_id)
        chain = [key]
        visited = {key}
        edge = self._outgoing.get(key)
        while edge is not None:
            next_id = edge.new_reference_id
            if next_id in visited:
                logger.warning(f"Reference cycle detected at {next_id} (from {key})")
                break
            chain.append(next_id)
            visited.add(next_id)
            edge = self._outgoing.get(next_id)
        return chain

    def current_id(self, item_id: Any) -> str:
        """Актуальный артикул после всех замен"""
        return self.follow_chain(item_id)[-1]

    def dangling_edges(self, known_item_ids: Iterable[Any]) -> List[ReplacementEdge]:
        """Замены, указывающие на позицию, которой нет в known_item_ids"""
        known = {clean_item_id(i) for i in known_item_ids}
        dangling = [e for e in self._outgoing.values() if e.new_reference_id not in known]
        for edge in dangling:
            logger.warning(
                f"Reference {edge.original_item_id} -> {edge.new_reference_id} points to unknown item"
            )
        return dangling

    def __len__(self) -> int:
        return len(self._outgoing)

    def __contains__(self, item_id: Any) -> bool:
        key = clean_item_id(item_id)
        return key in self._outgoing or key in self._incoming
