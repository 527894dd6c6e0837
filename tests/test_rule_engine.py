from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from models import OperationType, Segment
from rule_engine import (
    DEFAULT_RULE,
    AllocationRule,
    PeriodTotals,
    RuleEditor,
    aggregate,
    delta_percent,
    evaluate,
    income_shares,
    planned_amount,
    segment_of,
    validate_rule,
)


@dataclass
class Cat:
    type: OperationType
    segment: Optional[Segment]


@dataclass
class Op:
    type: OperationType
    amount_cents: int
    category_id: Optional[int]


CATEGORIES = {
    1: Cat(OperationType.income, None),
    2: Cat(OperationType.expense, Segment.needs),
    3: Cat(OperationType.expense, Segment.wants),
    4: Cat(OperationType.savings, Segment.savings),
    5: Cat(OperationType.expense, None),
}


class MemoryStore:
    def __init__(self, rule: AllocationRule = DEFAULT_RULE, accept: bool = True):
        self.rule = rule
        self.accept = accept
        self.saves: list[AllocationRule] = []

    def load_rule(self) -> AllocationRule:
        return self.rule

    def save_rule(self, rule: AllocationRule) -> bool:
        self.saves.append(rule)
        if self.accept:
            self.rule = rule
        return self.accept


def test_validate_rule_reports_total_and_delta() -> None:
    assert validate_rule(DEFAULT_RULE).is_valid
    assert validate_rule(DEFAULT_RULE).delta == 0

    short = validate_rule(AllocationRule(50, 30, 10))
    assert not short.is_valid
    assert short.total == 90
    assert short.delta == 10

    over = validate_rule(AllocationRule(60, 40, 20))
    assert not over.is_valid
    assert over.total == 120
    assert over.delta == -20

    assert validate_rule(AllocationRule(100, 0, 0)).is_valid


def test_segment_of_ignores_income_and_missing_categories() -> None:
    assert segment_of(None) is None
    assert segment_of(Cat(OperationType.income, Segment.needs)) is None
    assert segment_of(Cat(OperationType.expense, None)) is None
    assert segment_of(Cat(OperationType.expense, Segment.wants)) == Segment.wants
    assert segment_of(Cat(OperationType.savings, Segment.savings)) == Segment.savings


def test_validate_rule_across_percent_range() -> None:
    for needs in range(101):
        for wants in range(101):
            for savings in (0, 100 - needs - wants, 100):
                if savings < 0:
                    continue
                result = validate_rule(AllocationRule(needs, wants, savings))
                total = needs + wants + savings
                assert result.total == total
                assert result.delta == 100 - total
                assert result.is_valid == (total == 100)


def test_segment_of_rejects_segment_of_another_type() -> None:
    assert segment_of(Cat(OperationType.expense, Segment.savings)) is None
    assert segment_of(Cat(OperationType.savings, Segment.needs)) is None
    assert segment_of(Cat(OperationType.savings, None)) is None


def test_aggregate_empty_input_is_all_zero() -> None:
    totals = aggregate([], CATEGORIES)
    assert totals == PeriodTotals()
    assert totals.balance == 0


def test_aggregate_totals_by_type_and_segment() -> None:
    ops = [
        Op(OperationType.income, 100_000, 1),
        Op(OperationType.expense, 40_000, 2),
        Op(OperationType.expense, 15_000, 3),
        Op(OperationType.expense, 5_000, 5),
        Op(OperationType.expense, 2_500, None),
        Op(OperationType.expense, 1_000, 999),
        Op(OperationType.savings, 20_000, 4),
    ]
    totals = aggregate(ops, CATEGORIES)

    assert totals.income_total == 100_000
    assert totals.expense_total == 63_500
    assert totals.savings_total == 20_000
    assert totals.needs_total == 40_000
    assert totals.wants_total == 15_000
    assert totals.savings_segment_total == 20_000
    assert totals.balance == 36_500
    # Unclassified spending still counts towards the expense total.
    segmented = totals.needs_total + totals.wants_total
    assert segmented <= totals.expense_total


def test_aggregate_is_order_independent() -> None:
    ops = [
        Op(OperationType.income, 10_000, 1),
        Op(OperationType.expense, 3_000, 2),
        Op(OperationType.expense, 1_234, 3),
        Op(OperationType.savings, 2_000, 4),
    ]
    assert aggregate(ops, CATEGORIES) == aggregate(list(reversed(ops)), CATEGORIES)


def test_planned_amounts_follow_income() -> None:
    assert planned_amount(100_000, 50) == 50_000
    assert planned_amount(0, 50) == 0
    # 333 * 0.5 = 166.5 cents rounds half up.
    assert planned_amount(333, 50) == 167


def test_delta_percent() -> None:
    assert delta_percent(60_000, 50_000) == Decimal("20.00")
    assert delta_percent(40_000, 50_000) == Decimal("-20.00")
    assert delta_percent(100, 0) is None
    assert delta_percent(0, 300) == Decimal("-100.00")


def test_evaluate_default_rule() -> None:
    totals = PeriodTotals(
        income_total=100_000,
        expense_total=90_000,
        needs_total=60_000,
        wants_total=30_000,
        savings_segment_total=0,
    )
    evaluation = evaluate(DEFAULT_RULE, totals)

    assert evaluation.needs_planned == 50_000
    assert evaluation.wants_planned == 30_000
    assert evaluation.savings_planned == 20_000
    assert evaluation.needs_actual == 60_000
    assert evaluation.needs_delta_percent == Decimal("20.00")
    assert evaluation.wants_delta_percent == Decimal("0.00")
    assert evaluation.savings_delta_percent == Decimal("-100.00")


def test_evaluate_without_income_has_no_delta() -> None:
    evaluation = evaluate(DEFAULT_RULE, PeriodTotals(expense_total=500, needs_total=500))
    assert evaluation.needs_planned == 0
    assert evaluation.needs_actual == 500
    assert evaluation.needs_delta_percent is None
    assert evaluation.wants_delta_percent is None


def test_income_shares() -> None:
    totals = PeriodTotals(
        income_total=200_000, needs_total=100_000, wants_total=33_333
    )
    shares = income_shares(totals)
    assert shares[Segment.needs] == 50
    assert shares[Segment.wants] == 17
    assert shares[Segment.savings] == 0
    assert income_shares(PeriodTotals()) == {segment: 0 for segment in Segment}


def test_editor_tracks_dirty_state_and_saves() -> None:
    store = MemoryStore(AllocationRule(60, 20, 20))
    editor = RuleEditor(store)
    editor.load()

    assert editor.rule == AllocationRule(60, 20, 20)
    assert not editor.is_dirty

    editor.update(needs_percent=50, wants_percent=30)
    assert editor.is_dirty
    assert editor.validation.is_valid

    result = editor.save()
    assert result.saved
    assert result.validation.is_valid
    assert result.rule == AllocationRule(50, 30, 20)
    assert not editor.is_dirty
    assert store.rule == AllocationRule(50, 30, 20)


def test_editor_refuses_to_save_invalid_rule() -> None:
    store = MemoryStore()
    editor = RuleEditor(store)
    editor.load()

    editor.update(savings_percent=30)
    result = editor.save()

    assert not result.saved
    assert not result.validation.is_valid
    assert result.validation.total == 110
    assert store.saves == []
    assert editor.is_dirty


def test_editor_stays_dirty_when_store_rejects() -> None:
    store = MemoryStore(accept=False)
    editor = RuleEditor(store)
    editor.load()

    editor.update(needs_percent=40, wants_percent=40)
    result = editor.save()

    assert result.validation.is_valid
    assert result.saved is False
    assert len(store.saves) == 1
    assert editor.is_dirty


def test_editor_reset_to_default() -> None:
    store = MemoryStore(AllocationRule(70, 10, 20))
    editor = RuleEditor(store)
    editor.load()

    editor.reset_to_default()
    assert editor.rule == DEFAULT_RULE
    assert editor.is_dirty
    editor.save()
    assert store.rule == DEFAULT_RULE


def test_default_rule_plans_half_thirty_twenty() -> None:
    evaluation = evaluate(DEFAULT_RULE, PeriodTotals(income_total=1_000))
    planned = (
        evaluation.needs_planned,
        evaluation.wants_planned,
        evaluation.savings_planned,
    )
    assert planned == (500, 300, 200)


def test_mislabelled_categories_never_inflate_segments() -> None:
    categories = {
        1: Cat(OperationType.expense, Segment.savings),
        2: Cat(OperationType.savings, Segment.needs),
    }
    ops = [
        Op(OperationType.expense, 10_000, 1),
        Op(OperationType.savings, 5_000, 2),
    ]
    totals = aggregate(ops, categories)

    assert totals.expense_total == 10_000
    assert totals.savings_total == 5_000
    assert totals.needs_total == 0
    assert totals.savings_segment_total == 0
    assert totals.savings_segment_total <= totals.savings_total


def test_operation_under_category_of_another_type_is_unclassified() -> None:
    ops = [
        Op(OperationType.savings, 7_000, 2),
        Op(OperationType.expense, 3_000, 4),
    ]
    totals = aggregate(ops, CATEGORIES)

    assert totals.savings_total == 7_000
    assert totals.expense_total == 3_000
    assert totals.needs_total == 0
    assert totals.savings_segment_total == 0


def test_fully_tagged_operations_fill_their_segments() -> None:
    ops = [
        Op(OperationType.income, 90_000, 1),
        Op(OperationType.expense, 30_000, 2),
        Op(OperationType.expense, 12_345, 3),
        Op(OperationType.expense, 655, 2),
        Op(OperationType.savings, 8_000, 4),
        Op(OperationType.savings, 2_000, 4),
    ]
    totals = aggregate(ops, CATEGORIES)

    assert totals.needs_total + totals.wants_total == totals.expense_total
    assert totals.savings_segment_total == totals.savings_total == 10_000


def test_unclassified_savings_stay_out_of_the_savings_segment() -> None:
    ops = [
        Op(OperationType.savings, 4_000, 4),
        Op(OperationType.savings, 1_500, None),
    ]
    totals = aggregate(ops, CATEGORIES)

    assert totals.savings_total == 5_500
    assert totals.savings_segment_total == 4_000
    assert totals.savings_segment_total < totals.savings_total


def test_negative_amounts_pass_through() -> None:
    ops = [
        Op(OperationType.income, 1_000, 1),
        Op(OperationType.expense, -500, 2),
        Op(OperationType.expense, 200, 3),
    ]
    totals = aggregate(ops, CATEGORIES)

    assert totals.expense_total == -300
    assert totals.needs_total == -500
    assert totals.wants_total == 200
    assert totals.balance == 1_300

    evaluation = evaluate(DEFAULT_RULE, totals)
    assert evaluation.needs_actual == -500
    assert evaluation.needs_planned == 500
    assert evaluation.needs_delta_percent == Decimal("-200.00")
