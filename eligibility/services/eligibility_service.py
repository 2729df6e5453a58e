"""
Eligibility Service - combined rating and SMC evaluation for one profile
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.utils import timezone

from ..adl_factors import ADLResult, empty_factor_map, score_adl
from ..schemas import SymptomLogEntry, parse_conditions, parse_logs, parse_signals
from ..smc_classifier import CategoryMatch, classify
from ..smc_rates import RateTable, get_rate_table
from ..va_math import combine_detailed
from ..va_special_compensation import (
    HigherLevelsResult,
    SMCKResult,
    SMCLResult,
    SMCSResult,
    TierAggregate,
    aggregate,
    evaluate_higher_levels,
    evaluate_k,
    evaluate_l,
    evaluate_s,
)

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW_DAYS = 90


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class EligibilitySummary:
    """Everything the presentation layer needs for one profile"""
    combined_rating: int = 0
    combined_breakdown: List[dict] = field(default_factory=list)
    category_matches: List[CategoryMatch] = field(default_factory=list)
    smc_k: SMCKResult = field(default_factory=SMCKResult)
    smc_s: SMCSResult = field(default_factory=SMCSResult)
    smc_l: SMCLResult = field(default_factory=SMCLResult)
    adl: ADLResult = field(default_factory=lambda: ADLResult(has_data=False, factors=empty_factor_map()))
    higher_levels: HigherLevelsResult = field(default_factory=HigherLevelsResult)
    tiers: TierAggregate = field(default_factory=TierAggregate)
    rate_year: Optional[int] = None

    @property
    def badges(self) -> Dict[str, bool]:
        return self.tiers.badges

    @property
    def total_monthly(self) -> float:
        return self.tiers.total_monthly

    @property
    def any_eligible(self) -> bool:
        return any(self.badges.values())

    def to_dict(self) -> dict:
        return {
            'combined_rating': self.combined_rating,
            'combined_breakdown': self.combined_breakdown,
            'category_matches': [m.to_dict() for m in self.category_matches],
            'smc_k': self.smc_k.to_dict(),
            'smc_s': self.smc_s.to_dict(),
            'smc_l': self.smc_l.to_dict(),
            'adl': self.adl.to_dict(),
            'higher_levels': self.higher_levels.to_dict(),
            'badges': dict(self.badges),
            'base_level': self.tiers.base_level,
            'highest_level': self.tiers.highest_level,
            'k_added': self.tiers.k_added,
            'total_monthly': self.total_monthly,
            'rate_year': self.rate_year,
        }


# ============================================================================
# ENGINE
# ============================================================================

class EligibilityEngine:
    """
    Runs the evaluators in order for one set of input snapshots.

    Each evaluator is guarded: an unexpected error inside one tier is logged
    and that tier is reported as not eligible, so the rest of the summary
    is still produced.
    """

    def __init__(self, rate_table: Optional[RateTable] = None):
        self.rate_table = rate_table or get_rate_table()

    def _guarded(self, label: str, fallback, func, *args):
        try:
            return func(*args)
        except Exception:
            logger.exception("SMC evaluator '%s' failed; reporting not eligible", label)
            return fallback()

    def evaluate(
        self,
        conditions: Optional[Iterable[Any]],
        logs: Optional[Iterable[Any]],
        signals: Optional[Iterable[Any]] = None,
    ) -> EligibilitySummary:
        """
        Evaluate a profile.

        Args:
            conditions: ConditionRecord objects or raw journal dicts
            logs: SymptomLogEntry objects or raw journal dicts
            signals: Optional rating-card SMC-K signals

        Returns:
            EligibilitySummary; inputs are never modified
        """
        rate_table = self.rate_table

        # Step 1: Read snapshots, skipping records that can't be parsed
        condition_records = parse_conditions(conditions)
        log_entries = parse_logs(logs)
        signal_records = parse_signals(signals)

        # Step 2: Combined rating
        breakdown = self._guarded('combined', lambda: None, combine_detailed, condition_records)

        # Step 3: Anatomical-loss categories and ADL coverage
        matches = self._guarded('classify', list, classify, condition_records)
        adl = self._guarded(
            'adl', lambda: ADLResult(has_data=False, factors=empty_factor_map()),
            score_adl, log_entries, rate_table,
        )

        # Step 4: Tier evaluators
        smc_k = self._guarded('k', SMCKResult, evaluate_k, matches, rate_table, signal_records)
        smc_s = self._guarded('s', SMCSResult, evaluate_s, condition_records, rate_table)
        smc_l = self._guarded('l', SMCLResult, evaluate_l, condition_records, adl, rate_table)
        higher = self._guarded(
            'higher', HigherLevelsResult,
            evaluate_higher_levels, condition_records, adl, smc_l, rate_table,
        )

        # Step 5: One recommended amount
        tiers = self._guarded('aggregate', TierAggregate, aggregate, smc_k, smc_s, adl, rate_table, smc_l, higher)

        summary = EligibilitySummary(
            combined_rating=breakdown.combined_rating if breakdown else 0,
            combined_breakdown=[step.to_dict() for step in breakdown.breakdown] if breakdown else [],
            category_matches=matches,
            smc_k=smc_k,
            smc_s=smc_s,
            smc_l=smc_l,
            adl=adl,
            higher_levels=higher,
            tiers=tiers,
            rate_year=rate_table.year,
        )

        # Counts and tiers only; condition names and notes stay out of logs
        logger.info(
            "SMC evaluation: conditions=%d logs=%d combined=%d k_awards=%d base=%s total=%.2f year=%s",
            len(condition_records), len(log_entries), summary.combined_rating,
            smc_k.capped_awards, tiers.base_level, tiers.total_monthly, rate_table.year,
        )
        return summary


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

def evaluate(
    conditions: Optional[Iterable[Any]],
    logs: Optional[Iterable[Any]],
    rate_table: Optional[RateTable] = None,
    signals: Optional[Iterable[Any]] = None,
) -> EligibilitySummary:
    """Evaluate a profile with the given (or configured) rate table."""
    return EligibilityEngine(rate_table).evaluate(conditions, logs, signals)


def _as_utc(value: datetime) -> datetime:
    if timezone.is_naive(value):
        return value.replace(tzinfo=dt_timezone.utc)
    return value.astimezone(dt_timezone.utc)


def filter_recent_logs(
    logs: Optional[Iterable[Any]],
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[SymptomLogEntry]:
    """
    Keep log entries from the last ``days`` days (settings.ADL_RECENT_WINDOW_DAYS
    by default). Entries without a readable timestamp are dropped. Naive
    timestamps are treated as UTC. A window reaching past the earliest
    representable date keeps every dated entry.
    """
    if days is None:
        days = getattr(settings, 'ADL_RECENT_WINDOW_DAYS', DEFAULT_RECENT_WINDOW_DAYS)
    try:
        cutoff = _as_utc(now or timezone.now()) - timedelta(days=days)
    except OverflowError:
        logger.warning("Recency window of %s days exceeds the date range; keeping all dated logs", days)
        cutoff = datetime.min.replace(tzinfo=dt_timezone.utc)
    return [
        entry for entry in parse_logs(logs)
        if entry.timestamp is not None and _as_utc(entry.timestamp) >= cutoff
    ]
