"""
Special Monthly Compensation rate tables, versioned by rate year.

A RateTable is immutable at evaluation time. Every evaluator takes the table
as an explicit argument; swapping tables changes dollar amounts only, never
classification.

References:
- 38 U.S.C. § 1114 - Rates of wartime disability compensation
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from django.conf import settings


# SMC-K is a per-award rate; every other tier has veteran-alone and
# with-spouse columns and replaces the standard compensation rate.
K = 'K'
TIER_LABELS = ['K', 'L', 'L_HALF', 'M', 'M_HALF', 'N', 'N_HALF', 'O', 'P', 'R1', 'R2', 'S', 'T']


# 2026 SMC rates (effective December 1, 2025 - 2.8% COLA)
SMC_RATES_2026 = {
    'K': {'rate': 139.87},
    'L': {'veteran_alone': 4993.35, 'with_spouse': 5259.35},
    'L_HALF': {'veteran_alone': 5240.83, 'with_spouse': 5506.83},
    'M': {'veteran_alone': 5505.87, 'with_spouse': 5771.87},
    'M_HALF': {'veteran_alone': 5862.18, 'with_spouse': 6128.18},
    'N': {'veteran_alone': 6218.48, 'with_spouse': 6484.48},
    'N_HALF': {'veteran_alone': 6583.49, 'with_spouse': 6849.49},
    'O': {'veteran_alone': 6948.50, 'with_spouse': 7214.50},
    'P': {'veteran_alone': 6948.50, 'with_spouse': 7214.50},
    'R1': {'veteran_alone': 9973.73, 'with_spouse': 10239.73},
    'R2': {'veteran_alone': 11438.14, 'with_spouse': 11704.14},
    'S': {'veteran_alone': 4108.37, 'with_spouse': 4374.37},
    'T': {'veteran_alone': 11438.14, 'with_spouse': 11704.14},
}

# 2025 SMC rates (effective December 1, 2024 - 2.5% COLA), veteran alone
SMC_RATES_2025 = {
    'K': {'rate': 136.06},
    'L': {'veteran_alone': 4767.34},
    'M': {'veteran_alone': 5261.24},
    'N': {'veteran_alone': 5985.06},
    'O': {'veteran_alone': 6689.81},
    'R1': {'veteran_alone': 9559.22},
    'R2': {'veteran_alone': 10964.66},
    'S': {'veteran_alone': 4288.45},
    'T': {'veteran_alone': 10964.66},
}

# 2024 SMC rates (effective December 1, 2023), veteran alone
SMC_RATES_2024 = {
    'K': {'rate': 131.64},
    'L': {'veteran_alone': 4847.05},
    'M': {'veteran_alone': 5339.31},
    'N': {'veteran_alone': 5916.31},
    'O': {'veteran_alone': 6494.12},
    'R1': {'veteran_alone': 8203.91},
    'R2': {'veteran_alone': 9414.26},
    'S': {'veteran_alone': 4430.63},
    'T': {'veteran_alone': 9414.26},
}

SMC_RATES_BY_YEAR = {
    2026: SMC_RATES_2026,
    2025: SMC_RATES_2025,
    2024: SMC_RATES_2024,
}

# Available rate years (most recent first)
AVAILABLE_RATE_YEARS = [2026, 2025, 2024]

DEFAULT_RATE_YEAR = 2026


def _freeze(rates: Dict[str, Dict[str, float]]) -> Mapping[str, Mapping[str, float]]:
    return MappingProxyType({tier: MappingProxyType(dict(cols)) for tier, cols in rates.items()})


@dataclass(frozen=True)
class RateTable:
    """Monthly SMC rates for one rate year."""
    year: int
    rates: Mapping[str, Mapping[str, float]]

    @classmethod
    def from_dict(cls, year: int, rates: Dict[str, Dict[str, float]]) -> 'RateTable':
        return cls(year=year, rates=_freeze(rates))

    @property
    def k_rate(self) -> float:
        """Per-award SMC-K rate."""
        return float(self.rates.get(K, {}).get('rate', 0.0))

    def amount(self, tier: Optional[str], with_spouse: bool = False) -> float:
        """
        Monthly amount for a tier label. Unknown tiers, and tiers the year
        does not publish, are worth 0.
        """
        if not tier:
            return 0.0
        if tier == K:
            return self.k_rate
        columns = self.rates.get(tier)
        if not columns:
            return 0.0
        if with_spouse and 'with_spouse' in columns:
            return float(columns['with_spouse'])
        return float(columns.get('veteran_alone', 0.0))

    def to_dict(self) -> dict:
        return {
            'year': self.year,
            'rates': {tier: dict(cols) for tier, cols in self.rates.items()},
        }


DEFAULT_RATE_TABLE = RateTable.from_dict(DEFAULT_RATE_YEAR, SMC_RATES_2026)


def get_rate_table(year: Optional[int] = None) -> RateTable:
    """
    Look up the rate table for a year.

    With no year, uses settings.SMC_RATE_YEAR. Unknown years fall back to
    the default (most recent) table.
    """
    if year is None:
        year = getattr(settings, 'SMC_RATE_YEAR', DEFAULT_RATE_YEAR)
    rates = SMC_RATES_BY_YEAR.get(year)
    if rates is None:
        return DEFAULT_RATE_TABLE
    return RateTable.from_dict(year, rates)
