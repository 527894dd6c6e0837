"""50/30/20 allocation rule engine.

Pure computations over already-fetched operations and categories: rule
validation, category segmentation, period aggregation and the
actual-vs-planned projection. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional, Protocol

from models import OperationType, Segment


class OperationRecord(Protocol):
    type: OperationType
    amount_cents: int
    category_id: Optional[int]


class CategoryRecord(Protocol):
    type: OperationType
    segment: Optional[Segment]


@dataclass(frozen=True)
class AllocationRule:
    needs_percent: int
    wants_percent: int
    savings_percent: int

    def percent_for(self, segment: Segment) -> int:
        if segment == Segment.needs:
            return self.needs_percent
        if segment == Segment.wants:
            return self.wants_percent
        return self.savings_percent


DEFAULT_RULE = AllocationRule(needs_percent=50, wants_percent=30, savings_percent=20)


@dataclass(frozen=True)
class RuleValidation:
    is_valid: bool
    total: int
    delta: int


def validate_rule(rule: AllocationRule) -> RuleValidation:
    total = rule.needs_percent + rule.wants_percent + rule.savings_percent
    return RuleValidation(is_valid=total == 100, total=total, delta=100 - total)


def segment_of(category: Optional[CategoryRecord]) -> Optional[Segment]:
    """Segment an operation in ``category`` counts towards, if any.

    Income categories never carry a segment. Expense categories count towards
    needs or wants and savings categories towards savings; a stored segment
    that disagrees with the category type leaves it unclassified.
    """
    if category is None or category.segment is None:
        return None
    segment = Segment(category.segment)
    category_type = OperationType(category.type)
    if category_type == OperationType.expense and segment != Segment.savings:
        return segment
    if category_type == OperationType.savings and segment == Segment.savings:
        return segment
    return None


@dataclass(frozen=True)
class PeriodTotals:
    income_total: int = 0
    expense_total: int = 0
    savings_total: int = 0
    needs_total: int = 0
    wants_total: int = 0
    savings_segment_total: int = 0

    @property
    def balance(self) -> int:
        return self.income_total - self.expense_total

    def segment_total(self, segment: Segment) -> int:
        if segment == Segment.needs:
            return self.needs_total
        if segment == Segment.wants:
            return self.wants_total
        return self.savings_segment_total


def aggregate(
    operations: Iterable[OperationRecord],
    categories_by_id: Mapping[int, CategoryRecord],
) -> PeriodTotals:
    by_type = {member: 0 for member in OperationType}
    by_segment = {member: 0 for member in Segment}

    for op in operations:
        op_type = OperationType(op.type)
        by_type[op_type] += op.amount_cents

        category = (
            categories_by_id.get(op.category_id)
            if op.category_id is not None
            else None
        )
        # An operation filed under a category of another type stays unclassified.
        if category is None or OperationType(category.type) != op_type:
            continue
        segment = segment_of(category)
        if segment is not None:
            by_segment[segment] += op.amount_cents

    return PeriodTotals(
        income_total=by_type[OperationType.income],
        expense_total=by_type[OperationType.expense],
        savings_total=by_type[OperationType.savings],
        needs_total=by_segment[Segment.needs],
        wants_total=by_segment[Segment.wants],
        savings_segment_total=by_segment[Segment.savings],
    )


@dataclass(frozen=True)
class RuleEvaluation:
    needs_planned: int
    wants_planned: int
    savings_planned: int
    needs_actual: int
    wants_actual: int
    savings_actual: int
    # None when nothing was planned for the segment.
    needs_delta_percent: Optional[Decimal]
    wants_delta_percent: Optional[Decimal]
    savings_delta_percent: Optional[Decimal]


_CENT = Decimal("1")
_HUNDREDTH = Decimal("0.01")


def planned_amount(income_cents: int, percent: int) -> int:
    planned = Decimal(income_cents) * Decimal(percent) / Decimal(100)
    return int(planned.quantize(_CENT, rounding=ROUND_HALF_UP))


def delta_percent(actual: int, planned: int) -> Optional[Decimal]:
    if planned <= 0:
        return None
    delta = (Decimal(actual) - Decimal(planned)) / Decimal(planned) * Decimal(100)
    return delta.quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)


def evaluate(rule: AllocationRule, totals: PeriodTotals) -> RuleEvaluation:
    planned = {
        segment: planned_amount(totals.income_total, rule.percent_for(segment))
        for segment in Segment
    }
    actual = {segment: totals.segment_total(segment) for segment in Segment}
    return RuleEvaluation(
        needs_planned=planned[Segment.needs],
        wants_planned=planned[Segment.wants],
        savings_planned=planned[Segment.savings],
        needs_actual=actual[Segment.needs],
        wants_actual=actual[Segment.wants],
        savings_actual=actual[Segment.savings],
        needs_delta_percent=delta_percent(
            actual[Segment.needs], planned[Segment.needs]
        ),
        wants_delta_percent=delta_percent(
            actual[Segment.wants], planned[Segment.wants]
        ),
        savings_delta_percent=delta_percent(
            actual[Segment.savings], planned[Segment.savings]
        ),
    )


def income_shares(totals: PeriodTotals) -> dict[Segment, int]:
    """Whole-percent share of income actually spent per segment."""
    if totals.income_total <= 0:
        return {segment: 0 for segment in Segment}
    income = Decimal(totals.income_total)
    return {
        segment: int(
            (Decimal(totals.segment_total(segment)) / income * Decimal(100)).quantize(
                _CENT, rounding=ROUND_HALF_UP
            )
        )
        for segment in Segment
    }


@dataclass(frozen=True)
class RuleSaveResult:
    rule: AllocationRule
    validation: RuleValidation
    # False when the rule was invalid or the store refused it.
    saved: bool


class RuleStore(Protocol):
    def load_rule(self) -> AllocationRule: ...

    def save_rule(self, rule: AllocationRule) -> bool: ...


class RuleEditor:
    """Editing session for one user's allocation rule.

    ``is_dirty`` reports whether the in-memory rule differs from the last
    rule successfully loaded from or saved to the store.
    """

    def __init__(self, store: RuleStore) -> None:
        self.store = store
        self._persisted = DEFAULT_RULE
        self._current = DEFAULT_RULE

    @property
    def rule(self) -> AllocationRule:
        return self._current

    @property
    def is_dirty(self) -> bool:
        return self._current != self._persisted

    @property
    def validation(self) -> RuleValidation:
        return validate_rule(self._current)

    def load(self) -> AllocationRule:
        rule = self.store.load_rule()
        self._persisted = rule
        self._current = rule
        return rule

    def update(
        self,
        *,
        needs_percent: Optional[int] = None,
        wants_percent: Optional[int] = None,
        savings_percent: Optional[int] = None,
    ) -> AllocationRule:
        current = self._current
        self._current = AllocationRule(
            needs_percent=(
                current.needs_percent if needs_percent is None else needs_percent
            ),
            wants_percent=(
                current.wants_percent if wants_percent is None else wants_percent
            ),
            savings_percent=(
                current.savings_percent if savings_percent is None else savings_percent
            ),
        )
        return self._current

    def reset_to_default(self) -> AllocationRule:
        self._current = DEFAULT_RULE
        return self._current

    def save(self) -> RuleSaveResult:
        validation = self.validation
        if not validation.is_valid:
            return RuleSaveResult(self._current, validation, saved=False)
        saved = self.store.save_rule(self._current)
        if saved:
            self._persisted = self._current
        return RuleSaveResult(self._current, validation, saved=saved)
