"""
Activities of Daily Living (ADL) scoring for Aid & Attendance.

Daily-living limitations are logged as symptom slugs such as ``adl-dressing``
or ``adl-bedridden``. Matching logs are bucketed into the seven ADL factors
and scanned for severity flags, which decide a potential SMC tier:

1. R  - nursing-level care, or total dependence with a safety factor
2. L  - three or more factors, bedridden, or total dependence
3. S  - housebound
4. no tier

References:
- 38 CFR § 3.352(a) - Criteria for determining need for aid and attendance
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from django.conf import settings

from .schemas import SymptomLogEntry
from .smc_rates import RateTable


ADL_PREFIX = 'adl-'
ADL_CATEGORY = 'adl'

NO_DATA_MESSAGE = (
    'No ADL limitations logged. Track daily living difficulties to assess '
    'Aid & Attendance eligibility.'
)

# Factor -> substrings of the symptom slug
ADL_FACTOR_KEYWORDS: Dict[str, tuple] = {
    'dressing': ('dress',),
    'hygiene': ('hygiene', 'bath'),
    'feeding': ('feed', 'eat'),
    'toileting': ('toilet', 'bowel', 'bladder', 'catheter', 'incontinence'),
    'mobility': ('mobility', 'bed', 'wheelchair', 'walk', 'transfer'),
    'safety': ('safety', 'supervision'),
    'cognitive': ('cognitive', 'memory'),
}

SEVERITY_KEYWORDS: Dict[str, str] = {
    'bedridden': 'bedridden',
    'total_dependence': 'total-depend',
    'nursing_level': 'nursing-level',
    'housebound': 'housebound',
}

# Tier decided from the logs -> rate table label
TIER_RATE_LABELS = {'R': 'R1', 'L': 'L', 'S': 'S'}

DEFAULT_FACTOR_THRESHOLD = 3


@dataclass
class SeverityFlags:
    bedridden: bool = False
    total_dependence: bool = False
    nursing_level: bool = False
    housebound: bool = False

    def to_dict(self) -> dict:
        return {
            'bedridden': self.bedridden,
            'total_dependence': self.total_dependence,
            'nursing_level': self.nursing_level,
            'housebound': self.housebound,
        }


@dataclass
class ADLResult:
    """ADL factor coverage and the tier it points to"""
    has_data: bool
    total_logs: int = 0
    factors_affected: int = 0
    factors: Dict[str, bool] = field(default_factory=dict)
    flags: SeverityFlags = field(default_factory=SeverityFlags)
    potential_level: Optional[str] = None
    potential_amount: float = 0.0
    message: str = ''

    def to_dict(self) -> dict:
        return {
            'has_data': self.has_data,
            'total_logs': self.total_logs,
            'factors_affected': self.factors_affected,
            'factors': dict(self.factors),
            'flags': self.flags.to_dict(),
            'potential_level': self.potential_level,
            'potential_amount': self.potential_amount,
            'message': self.message,
        }


def empty_factor_map() -> Dict[str, bool]:
    return {factor: False for factor in ADL_FACTOR_KEYWORDS}


def is_adl_log(log: SymptomLogEntry) -> bool:
    return log.symptom_id.startswith(ADL_PREFIX) or log.symptom_category == ADL_CATEGORY


def factor_threshold() -> int:
    return getattr(settings, 'ADL_FACTOR_THRESHOLD', DEFAULT_FACTOR_THRESHOLD)


def _decide_tier(factors: Dict[str, bool], factors_affected: int, flags: SeverityFlags) -> Optional[str]:
    if flags.nursing_level or (flags.total_dependence and factors['safety']):
        return 'R'
    if factors_affected >= factor_threshold() or flags.bedridden or flags.total_dependence:
        return 'L'
    if flags.housebound:
        return 'S'
    return None


def score_adl(logs: Iterable[SymptomLogEntry], rate_table: RateTable) -> ADLResult:
    """
    Score ADL-category log entries.

    Non-ADL entries are ignored. With no ADL entries the result has
    ``has_data=False`` and a guidance message; this is not an error.
    """
    adl_logs: List[SymptomLogEntry] = [log for log in (logs or []) if is_adl_log(log)]
    if not adl_logs:
        return ADLResult(has_data=False, factors=empty_factor_map(), message=NO_DATA_MESSAGE)

    slugs = [log.symptom_id for log in adl_logs]

    factors = {
        factor: any(word in slug for slug in slugs for word in words)
        for factor, words in ADL_FACTOR_KEYWORDS.items()
    }
    factors_affected = sum(1 for affected in factors.values() if affected)

    flags = SeverityFlags(**{
        flag: any(word in slug for slug in slugs)
        for flag, word in SEVERITY_KEYWORDS.items()
    })

    level = _decide_tier(factors, factors_affected, flags)

    return ADLResult(
        has_data=True,
        total_logs=len(adl_logs),
        factors_affected=factors_affected,
        factors=factors,
        flags=flags,
        potential_level=level,
        potential_amount=rate_table.amount(TIER_RATE_LABELS.get(level)),
        message=f'{factors_affected} of {len(factors)} ADL factors documented',
    )
