from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from dateutil.relativedelta import relativedelta  # type: ignore[import-untyped]

from sisgeagro.domain.movements import MovementFilter, MovementView
from sisgeagro.domain.value_objects import MovementType
from sisgeagro.exceptions import ValidationError
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import MovementRepository

logger = get_logger(__name__)

ZERO = Decimal("0")


def percentage_change(current: Decimal, previous: Decimal) -> Decimal:
    """Change from previous to current in percent; 0 when previous is 0."""
    if previous == 0:
        return ZERO
    change = (current - previous) / abs(previous) * 100
    return change.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class PeriodTotals:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    investment: Decimal = ZERO
    taxes: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense

    def add(self, view: MovementView) -> None:
        if view.movement_type is MovementType.INCOME:
            self.income += view.amount
        elif view.movement_type is MovementType.EXPENSE:
            self.expense += view.amount
        else:
            self.investment += view.amount
        # Taxes only count on income and expense movements.
        if view.movement_type is not MovementType.INVESTMENT:
            self.taxes += view.taxes_total


@dataclass
class MonthlyTotals:
    month: str
    totals: PeriodTotals = field(default_factory=PeriodTotals)


@dataclass
class DashboardStats:
    start_date: date
    end_date: date
    totals: PeriodTotals
    previous: PeriodTotals
    movement_count: int
    by_category: dict[str, dict[str, Decimal]]
    monthly: list[MonthlyTotals]

    @property
    def income_change(self) -> Decimal:
        return percentage_change(self.totals.income, self.previous.income)

    @property
    def expense_change(self) -> Decimal:
        return percentage_change(self.totals.expense, self.previous.expense)

    @property
    def balance_change(self) -> Decimal:
        return percentage_change(self.totals.balance, self.previous.balance)


class DashboardService:
    """Aggregates movements by bill date for the dashboard."""

    def __init__(self, movement_repo: MovementRepository) -> None:
        self._movement_repo = movement_repo

    def get_stats(self, start_date: date, end_date: date) -> DashboardStats:
        if end_date < start_date:
            raise ValidationError(
                "endDate must not be before startDate",
                context={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            )

        views = self._movement_repo.list_views(
            MovementFilter(start_date=start_date, end_date=end_date)
        )

        totals = PeriodTotals()
        by_category: dict[str, dict[str, Decimal]] = defaultdict(dict)
        monthly = {key: MonthlyTotals(month=key) for key in self._month_keys(start_date, end_date)}
        for view in views:
            totals.add(view)
            per_type = by_category[view.category]
            kind = view.movement_type.value
            per_type[kind] = per_type.get(kind, ZERO) + view.amount
            monthly[view.bill_date.strftime("%Y-%m")].totals.add(view)

        previous = self._previous_period_totals(start_date, end_date)

        logger.debug(
            "dashboard_stats_computed",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            movements=len(views),
        )
        return DashboardStats(
            start_date=start_date,
            end_date=end_date,
            totals=totals,
            previous=previous,
            movement_count=len(views),
            by_category=dict(by_category),
            monthly=list(monthly.values()),
        )

    def _previous_period_totals(self, start_date: date, end_date: date) -> PeriodTotals:
        """Totals of the equally long period that ends the day before start_date."""
        length = end_date - start_date
        previous_end = start_date - timedelta(days=1)
        previous_start = previous_end - length
        totals = PeriodTotals()
        for view in self._movement_repo.list_views(
            MovementFilter(start_date=previous_start, end_date=previous_end)
        ):
            totals.add(view)
        return totals

    @staticmethod
    def _month_keys(start_date: date, end_date: date) -> list[str]:
        keys = []
        cursor = start_date.replace(day=1)
        while cursor <= end_date:
            keys.append(cursor.strftime("%Y-%m"))
            cursor += relativedelta(months=1)
        return keys
