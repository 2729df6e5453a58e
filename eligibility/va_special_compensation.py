"""
VA Special Monthly Compensation (SMC) eligibility

Implements eligibility checking for:
- SMC(k) - anatomical loss or loss of use, additive, capped at 3 awards
- SMC(s) - statutory housebound (one 100% disability plus 60% more)
- SMC(l) - bilateral losses or factual need for aid and attendance
- SMC(m) through SMC(t) - higher combinations and higher-level A&A
- Tier aggregation into one recommended monthly amount

All functions are pure: they read condition/log snapshots and a RateTable
and return result objects. Nothing here raises on bad data; a record that
can't be read simply fails to match.

References:
- 38 CFR 3.350 - Special Monthly Compensation
- 38 CFR 3.352 - Criteria for determining need for aid and attendance
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .adl_factors import ADLResult, factor_threshold
from .schemas import ConditionRecord, RatingCardSignal
from .smc_classifier import (
    APHONIA,
    BLINDNESS,
    CREATIVE_ORGAN,
    DEAFNESS,
    EXTREMITY,
    CategoryMatch,
)
from .smc_rates import RateTable
from .va_math import combine


# Statutory cap on concurrent SMC(k) awards
SMC_K_MAX_AWARDS = 3

# SMC(s): additional disabilities must combine to at least this
SMC_S_ADDITIONAL_THRESHOLD = 60

# Base tiers that SMC(k) is never paid on top of
K_NON_ADDITIVE_LEVELS = ('O', 'P', 'R1', 'R2', 'T')

BADGE_LEVELS = ['K', 'S', 'L', 'M', 'N', 'O', 'R1', 'R2', 'T']

# Highest first; first eligible level wins
HIGHER_LEVEL_PRIORITY = ['R2', 'T', 'R1', 'O', 'N', 'M']


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class SMCKResult:
    """Result of SMC(k) evaluation"""
    eligible: bool = False
    total_awards: int = 0
    capped_awards: int = 0
    monthly_amount: float = 0.0
    rate: float = 0.0
    max_awards: int = SMC_K_MAX_AWARDS
    eligible_categories: List[CategoryMatch] = field(default_factory=list)

    @property
    def max_reached(self) -> bool:
        return self.total_awards >= self.max_awards

    def to_dict(self) -> dict:
        return {
            'eligible': self.eligible,
            'total_awards': self.total_awards,
            'capped_awards': self.capped_awards,
            'monthly_amount': self.monthly_amount,
            'rate': self.rate,
            'max_awards': self.max_awards,
            'max_reached': self.max_reached,
            'eligible_categories': [m.to_dict() for m in self.eligible_categories],
        }


@dataclass
class SMCSResult:
    """Result of SMC(s) statutory housebound evaluation"""
    eligible: bool = False
    condition100: Optional[ConditionRecord] = None
    additional_conditions: List[ConditionRecord] = field(default_factory=list)
    additional_combined: int = 0
    monthly_amount: float = 0.0
    pathway: Optional[str] = None
    reason: str = ''
    recommendation: str = ''

    def to_dict(self) -> dict:
        return {
            'eligible': self.eligible,
            'condition100': _condition_summary(self.condition100),
            'additional_conditions': [_condition_summary(c) for c in self.additional_conditions],
            'additional_combined': self.additional_combined,
            'monthly_amount': self.monthly_amount,
            'pathway': self.pathway,
            'reason': self.reason,
            'recommendation': self.recommendation,
        }


@dataclass
class SMCLResult:
    """Result of SMC(l) evaluation"""
    eligible: bool = False
    pathways: List[Dict[str, str]] = field(default_factory=list)
    qualifying_pathway: Optional[str] = None
    monthly_amount: float = 0.0
    half_step_eligible: bool = False
    half_step_amount: float = 0.0

    def to_dict(self) -> dict:
        return {
            'eligible': self.eligible,
            'pathways': [dict(p) for p in self.pathways],
            'qualifying_pathway': self.qualifying_pathway,
            'monthly_amount': self.monthly_amount,
            'half_step_eligible': self.half_step_eligible,
            'half_step_amount': self.half_step_amount,
        }


@dataclass
class LevelFinding:
    eligible: bool = False
    conditions: List[str] = field(default_factory=list)
    reason: str = ''
    monthly_amount: float = 0.0

    def to_dict(self) -> dict:
        return {
            'eligible': self.eligible,
            'conditions': list(self.conditions),
            'reason': self.reason,
            'monthly_amount': self.monthly_amount,
        }


@dataclass
class HigherLevelsResult:
    """SMC(m), (n), (o), (r1), (r2) and (t) findings"""
    levels: Dict[str, LevelFinding] = field(
        default_factory=lambda: {key: LevelFinding() for key in HIGHER_LEVEL_PRIORITY}
    )
    highest_level: Optional[str] = None
    highest_amount: float = 0.0

    def is_eligible(self, level: str) -> bool:
        finding = self.levels.get(level)
        return bool(finding and finding.eligible)

    def to_dict(self) -> dict:
        return {
            'levels': {key: finding.to_dict() for key, finding in self.levels.items()},
            'highest_level': self.highest_level,
            'highest_amount': self.highest_amount,
        }


@dataclass
class TierAggregate:
    """Single recommended SMC amount and per-tier badges"""
    total_monthly: float = 0.0
    base_level: Optional[str] = None
    base_amount: float = 0.0
    k_added: bool = False
    k_amount: float = 0.0
    highest_level: Optional[str] = None
    badges: Dict[str, bool] = field(default_factory=lambda: {level: False for level in BADGE_LEVELS})

    def to_dict(self) -> dict:
        return {
            'total_monthly': self.total_monthly,
            'base_level': self.base_level,
            'base_amount': self.base_amount,
            'k_added': self.k_added,
            'k_amount': self.k_amount,
            'highest_level': self.highest_level,
            'badges': dict(self.badges),
        }


def _condition_summary(condition: Optional[ConditionRecord]) -> Optional[dict]:
    if condition is None:
        return None
    return {
        'id': condition.id,
        'condition_name': condition.condition_name,
        'current_rating': condition.current_rating,
    }


# =============================================================================
# SMC(k)
# =============================================================================

# Rating-card source -> (category, display name, default auto-grant)
SIGNAL_CATEGORIES: Dict[str, Tuple[str, str, bool]] = {
    'penis': (CREATIVE_ORGAN, 'Loss of Creative Organ - Penis', True),
    'testis': (CREATIVE_ORGAN, 'Loss of Creative Organ - Testis', True),
    'erectile_dysfunction': (CREATIVE_ORGAN, 'Loss of Creative Organ - ED', False),
    'ed': (CREATIVE_ORGAN, 'Loss of Creative Organ - ED', False),
    'female_reproductive': (CREATIVE_ORGAN, 'Loss of Creative Organ - Female Reproductive', True),
    'aphonia': (APHONIA, 'Complete Organic Aphonia', True),
    'hearing': (DEAFNESS, 'Complete Bilateral Deafness', True),
    'vision': (BLINDNESS, 'Blindness in One Eye', True),
    'amputation': (EXTREMITY, 'Loss of Extremity', True),
}

# Sources whose auto-grant value is fixed regardless of what the card reports
NEXUS_REQUIRED_SOURCES = ('erectile_dysfunction', 'ed')


def _signal_qualifies(signal: RatingCardSignal) -> bool:
    if signal.source == 'hearing':
        return signal.supported_rating == 100
    return signal.smc_eligible


def matches_from_signals(signals: Optional[Iterable[RatingCardSignal]]) -> List[CategoryMatch]:
    """
    Turn rating-card signals into category matches.

    Unknown sources are ignored. A non-extremity category reported by more
    than one card counts once (first card wins).
    """
    matches = []
    seen = set()
    for signal in signals or []:
        entry = SIGNAL_CATEGORIES.get(signal.source)
        if entry is None or not _signal_qualifies(signal):
            continue
        category, category_name, default_auto_grant = entry
        if category != EXTREMITY and category in seen:
            continue
        seen.add(category)

        if signal.source in NEXUS_REQUIRED_SOURCES:
            auto_grant = False
        elif signal.auto_grant is not None:
            auto_grant = signal.auto_grant
        else:
            auto_grant = default_auto_grant

        awards = 1
        if category == EXTREMITY:
            awards = signal.awards
            if signal.qualifying:
                category_name = f"{category_name} ({', '.join(signal.qualifying)})"

        matches.append(CategoryMatch(
            category=category,
            category_name=category_name,
            matched_conditions=[ConditionRecord(
                condition_name=signal.condition or category_name,
                current_rating=signal.supported_rating,
            )],
            auto_grant=auto_grant,
            awards=awards,
            source=f'rating_card:{signal.source}',
        ))
    return matches


def evaluate_k(
    category_matches: Iterable[CategoryMatch],
    rate_table: RateTable,
    signals: Optional[Iterable[RatingCardSignal]] = None,
) -> SMCKResult:
    """
    Aggregate SMC(k) award units.

    Rating-card signals are the more specific source: when a signal and the
    condition classifier both report a category, only the signal counts.
    Awards are capped at SMC_K_MAX_AWARDS; the total is reported uncapped.
    """
    signal_matches = matches_from_signals(signals)
    signal_categories = {m.category for m in signal_matches}
    merged = signal_matches + [
        m for m in (category_matches or []) if m.category not in signal_categories
    ]

    total_awards = sum(m.awards for m in merged)
    capped_awards = min(total_awards, SMC_K_MAX_AWARDS)
    rate = rate_table.k_rate

    return SMCKResult(
        eligible=total_awards > 0,
        total_awards=total_awards,
        capped_awards=capped_awards,
        monthly_amount=round(capped_awards * rate, 2),
        rate=rate,
        eligible_categories=merged,
    )


# =============================================================================
# SMC(s)
# =============================================================================

def select_hundred_percent_condition(
    conditions: List[ConditionRecord],
) -> Tuple[Optional[int], Optional[ConditionRecord]]:
    """
    Pick the 100% condition used for SMC(s).

    With several 100% conditions the earliest effective date wins; undated
    conditions sort last, and ties keep input order.
    """
    candidates = [
        (index, c) for index, c in enumerate(conditions) if c.current_rating == 100
    ]
    if not candidates:
        return None, None
    candidates.sort(key=lambda item: (
        item[1].effective_date is None,
        item[1].effective_date or date.max,
        item[0],
    ))
    return candidates[0]


def evaluate_s(conditions: Iterable[ConditionRecord], rate_table: RateTable) -> SMCSResult:
    """
    Statutory housebound test: one disability at 100% plus additional
    disabilities combining (VA math, rounded) to 60% or more.
    """
    conditions = list(conditions or [])
    index100, condition100 = select_hundred_percent_condition(conditions)

    if condition100 is None:
        return SMCSResult(
            eligible=False,
            reason='no condition at 100%',
            recommendation='SMC-S requires at least one condition rated at 100%',
        )

    additional = [
        c for i, c in enumerate(conditions) if i != index100 and c.rating > 0
    ]
    additional_combined = combine([c.rating for c in additional])
    eligible = additional_combined >= SMC_S_ADDITIONAL_THRESHOLD

    if eligible:
        reason = (
            f'100% for {condition100.condition_name} + {additional_combined}% '
            f'additional disabilities'
        )
        recommendation = 'Consider filing for SMC-S Housebound status'
    else:
        reason = (
            f'Additional disabilities only combine to {additional_combined}% '
            f'(need {SMC_S_ADDITIONAL_THRESHOLD}%+)'
        )
        recommendation = (
            f'Need {SMC_S_ADDITIONAL_THRESHOLD - additional_combined}% more in additional '
            f'disabilities for SMC-S eligibility'
        )

    return SMCSResult(
        eligible=eligible,
        condition100=condition100,
        additional_conditions=additional,
        additional_combined=additional_combined,
        monthly_amount=rate_table.amount('S') if eligible else 0.0,
        pathway='statutory' if eligible else None,
        reason=reason,
        recommendation=recommendation,
    )


# =============================================================================
# CONDITION TYPE HEURISTICS (SMC(l) and higher)
# =============================================================================

_ALS_PATTERN = re.compile(r'\bals\b')


def _has_loss_words(name: str) -> bool:
    return 'amputation' in name or 'loss of use' in name


# Condition type -> predicate(name, diagnostic code, rating)
CONDITION_TYPES = {
    'bilateral_feet': lambda n, dc, r: (
        ('bilateral' in n and ('foot' in n or 'feet' in n))
        or ('amputation' in n and 'both' in n and 'foot' in n)
    ),
    'bilateral_hands': lambda n, dc, r: (
        ('bilateral' in n or 'both' in n) and 'hand' in n
    ),
    'bilateral_blindness': lambda n, dc, r: ('bilateral' in n and 'blind' in n) or dc == '6064',
    'bilateral_deafness': lambda n, dc, r: ('bilateral' in n and 'deaf' in n) or (dc == '6100' and r == 100),
    'hand_loss': lambda n, dc, r: 'hand' in n and _has_loss_words(n),
    'foot_loss': lambda n, dc, r: 'foot' in n and _has_loss_words(n),
    'leg_above_knee': lambda n, dc, r: 'leg' in n and ('above knee' in n or 'hip' in n),
    'arm_above_elbow': lambda n, dc, r: 'arm' in n and ('above elbow' in n or 'shoulder' in n),
    'paraplegia': lambda n, dc, r: (
        'paraplegia' in n or 'spinal cord' in n or ('paralysis' in n and 'lower' in n)
    ),
    'sphincter_loss': lambda n, dc, r: 'sphincter' in n or 'incontinence' in n,
    'quadriplegia': lambda n, dc, r: 'quadriplegia' in n or 'tetraplegia' in n,
    'tbi_100': lambda n, dc, r: (
        (dc == '8045' or 'tbi' in n or 'traumatic brain' in n) and r == 100
    ),
    'als': lambda n, dc, r: dc == '8017' or bool(_ALS_PATTERN.search(n)) or 'amyotrophic lateral' in n,
}


def conditions_of_type(conditions: Iterable[ConditionRecord], condition_type: str) -> List[ConditionRecord]:
    predicate = CONDITION_TYPES[condition_type]
    return [
        c for c in conditions
        if predicate(c.condition_name.lower(), c.diagnostic_code.strip(), c.current_rating)
    ]


def has_condition_type(conditions: Iterable[ConditionRecord], condition_type: str) -> bool:
    return bool(conditions_of_type(conditions, condition_type))


# =============================================================================
# SMC(l)
# =============================================================================

def evaluate_l(
    conditions: Iterable[ConditionRecord],
    adl: Optional[ADLResult],
    rate_table: RateTable,
) -> SMCLResult:
    """
    SMC(l): loss of both feet, loss of both hands, loss of one hand and one
    foot, or factual need for regular aid and attendance shown by the ADL log.
    """
    conditions = list(conditions or [])
    pathways = []

    if has_condition_type(conditions, 'bilateral_feet'):
        pathways.append({
            'category': 'BILATERAL_FEET',
            'name': 'Loss of Both Feet',
            'description': 'Anatomical loss or loss of use of both feet',
            'pathway': 'bilateral_feet',
        })

    if has_condition_type(conditions, 'bilateral_hands'):
        pathways.append({
            'category': 'BILATERAL_HANDS',
            'name': 'Loss of Both Hands',
            'description': 'Anatomical loss or loss of use of both hands (may qualify for SMC-M instead)',
            'pathway': 'bilateral_hands',
        })

    if has_condition_type(conditions, 'hand_loss') and has_condition_type(conditions, 'foot_loss'):
        pathways.append({
            'category': 'HAND_AND_FOOT',
            'name': 'Loss of One Hand and One Foot',
            'description': 'Anatomical loss or loss of use of one hand AND one foot',
            'pathway': 'hand_and_foot',
        })

    factors_affected = adl.factors_affected if adl else 0
    nursing_level = bool(adl and adl.flags.nursing_level)
    factual_aa = bool(adl) and (
        factors_affected >= factor_threshold()
        or adl.flags.bedridden
        or adl.flags.total_dependence
    )
    if factual_aa:
        pathways.append({
            'category': 'AID_AND_ATTENDANCE',
            'name': 'Factual Need for Aid & Attendance',
            'description': f'{factors_affected} ADL factors documented',
            'pathway': 'factual_aa',
        })

    eligible = bool(pathways)

    return SMCLResult(
        eligible=eligible,
        pathways=pathways,
        # Anatomical pathways are listed first and take precedence
        qualifying_pathway=pathways[0]['pathway'] if pathways else None,
        monthly_amount=rate_table.amount('L') if eligible else 0.0,
        half_step_eligible=eligible and (factors_affected >= 5 or nursing_level),
        half_step_amount=rate_table.amount('L_HALF'),
    )


# =============================================================================
# SMC(m) THROUGH SMC(t)
# =============================================================================

def evaluate_higher_levels(
    conditions: Iterable[ConditionRecord],
    adl: Optional[ADLResult],
    smc_l: Optional[SMCLResult],
    rate_table: RateTable,
) -> HigherLevelsResult:
    """Check the more severe SMC combinations and pick the highest level."""
    conditions = list(conditions or [])
    result = HigherLevelsResult()
    levels = result.levels
    factors_affected = adl.factors_affected if adl else 0
    nursing_level = bool(adl and adl.flags.nursing_level)
    def has(condition_type):
        return has_condition_type(conditions, condition_type)

    def grant(level, description, reason):
        finding = levels[level]
        finding.eligible = True
        finding.conditions.append(description)
        finding.reason = reason

    # SMC(m)
    if has('bilateral_hands'):
        grant('M', 'Loss of use of both hands', 'Bilateral hand loss qualifies for SMC-M')
    if has('hand_loss') and has('leg_above_knee'):
        grant('M', 'Loss of one hand + one leg near hip',
              'Hand and leg (hip level) loss qualifies for SMC-M')
    if has('bilateral_blindness') and has('bilateral_deafness'):
        grant('M', 'Bilateral blindness (5/200) + bilateral deafness',
              'Blindness and deafness combination qualifies for SMC-M')

    # SMC(n)
    # Shoulder-level loss counts as an arm type, but N needs two above-elbow losses
    above_elbow = [
        c for c in conditions_of_type(conditions, 'arm_above_elbow')
        if 'above elbow' in c.condition_name.lower()
    ]
    if len(above_elbow) >= 2:
        grant('N', 'Loss of both arms above elbow level',
              'Bilateral arm loss above elbow qualifies for SMC-N')

    # SMC(o)
    if has('paraplegia') and has('sphincter_loss'):
        grant('O', 'Paraplegia with loss of sphincter control',
              'Paraplegia with sphincter loss qualifies for SMC-O')
    if has('quadriplegia'):
        grant('O', 'Quadriplegia', 'Quadriplegia qualifies for SMC-O')
    if has('als'):
        grant('O', 'ALS (Amyotrophic Lateral Sclerosis)',
              'ALS qualifies for SMC-O (minimum 100% rating)')

    # Pyramiding is allowed at O: two or more of L/M/N
    lmn_count = sum([
        bool(smc_l and smc_l.eligible),
        levels['M'].eligible,
        levels['N'].eligible,
    ])
    if lmn_count >= 2 and not levels['O'].eligible:
        grant('O', 'Multiple SMC-L/M/N level disabilities',
              'Combination meeting multiple L/M/N criteria qualifies for SMC-O (pyramiding)')

    # SMC(r)
    if levels['O'].eligible and factors_affected >= factor_threshold():
        grant('R1', 'SMC-O eligible + Aid & Attendance need',
              'SMC-O with separate A&A need qualifies for SMC-R1')
    if levels['R1'].eligible and nursing_level:
        grant('R2', 'SMC-R1 eligible + nursing home level care needed',
              'SMC-R1 with nursing home level care qualifies for SMC-R2')

    # SMC(t)
    if has('tbi_100') and factors_affected >= factor_threshold():
        grant('T', 'TBI at 100% + Aid & Attendance need',
              'TBI at 100% with A&A need qualifies for SMC-T')

    for level, finding in levels.items():
        if finding.eligible:
            finding.monthly_amount = rate_table.amount(level)

    for level in HIGHER_LEVEL_PRIORITY:
        if levels[level].eligible:
            result.highest_level = level
            result.highest_amount = levels[level].monthly_amount
            break

    return result


# =============================================================================
# TIER AGGREGATION
# =============================================================================

def aggregate(
    smc_k: Optional[SMCKResult],
    smc_s: Optional[SMCSResult],
    adl: Optional[ADLResult],
    rate_table: RateTable,
    smc_l: Optional[SMCLResult] = None,
    higher: Optional[HigherLevelsResult] = None,
) -> TierAggregate:
    """
    Combine tier results into one recommended monthly amount.

    The base tier is the single highest applicable replacement tier
    (R2 > T > R1 > O > N > M > L > S); tiers never stack with each other.
    SMC(k) is added on top of S, L, M and N, and stands alone when there is
    no base tier, but is never paid with O, R or T.
    """
    adl_level = adl.potential_level if adl else None
    k_eligible = bool(smc_k and smc_k.eligible)
    s_eligible = bool(smc_s and smc_s.eligible) or adl_level == 'S'
    l_eligible = bool(smc_l and smc_l.eligible) or adl_level == 'L'
    higher_eligible = higher.is_eligible if higher else (lambda level: False)

    badges = {
        'K': k_eligible,
        'S': s_eligible,
        'L': l_eligible,
        'M': higher_eligible('M'),
        'N': higher_eligible('N'),
        'O': higher_eligible('O'),
        'R1': higher_eligible('R1') or adl_level == 'R',
        'R2': higher_eligible('R2'),
        'T': higher_eligible('T'),
    }

    base_level = None
    for level in ('R2', 'T', 'R1', 'O', 'N', 'M', 'L', 'S'):
        if badges[level]:
            base_level = level
            break

    base_amount = rate_table.amount(base_level)
    k_added = k_eligible and base_level not in K_NON_ADDITIVE_LEVELS
    k_amount = smc_k.monthly_amount if k_added else 0.0

    return TierAggregate(
        total_monthly=round(base_amount + k_amount, 2),
        base_level=base_level,
        base_amount=base_amount,
        k_added=k_added,
        k_amount=k_amount,
        highest_level=base_level or ('K' if k_eligible else None),
        badges=badges,
    )


# =============================================================================
# LEVEL DESCRIPTIONS
# =============================================================================

SMC_LEVEL_DESCRIPTIONS = {
    'K': ('Loss of Use or Anatomical Loss', (
        'Awarded for loss or loss of use of one hand, one foot, both buttocks, '
        'one or more creative organs, blindness in one eye (having only light perception), '
        'or complete organic aphonia. Up to 3 awards, paid on top of other compensation.'
    )),
    'S': ('Housebound (100% plus 60%+)', (
        'A single disability rated at 100% AND additional service-connected '
        'disabilities independently ratable at 60% or more.'
    )),
    'L': ('Aid and Attendance or Bilateral Losses', (
        'The veteran is so helpless as to need regular aid and attendance of another '
        'person, is permanently bedridden, or has lost both feet, or one hand and one foot.'
    )),
    'M': ('More Severe Combinations', (
        'Loss of use of both hands, or combinations of blindness, deafness and extremity loss.'
    )),
    'N': ('Most Severe Combinations Below O', (
        'Anatomical loss of both arms or both legs at levels preventing natural elbow or knee action.'
    )),
    'O': ('Maximum Schedular SMC', (
        'Paraplegia with sphincter loss, or disabilities meeting two or more L/M/N criteria. '
        'SMC-K is not paid with SMC-O.'
    )),
    'R1': ('Higher Level Aid and Attendance', (
        'Entitled to SMC-O and needs regular aid and attendance. SMC-K is not paid with SMC-R.'
    )),
    'R2': ('Highest Level Aid and Attendance', (
        'Entitled to SMC-R1 and would require institutional care without personal health-care services.'
    )),
    'T': ('Aid and Attendance for TBI Residuals', (
        'TBI rated at 100% with a need for regular aid and attendance. SMC-K is not paid with SMC-T.'
    )),
}


def get_smc_level_description(level: str, rate_table: RateTable) -> Dict[str, Any]:
    """Display information for one SMC level, priced from the given table."""
    if level not in SMC_LEVEL_DESCRIPTIONS:
        return {}
    title, description = SMC_LEVEL_DESCRIPTIONS[level]
    return {
        'level': level,
        'name': f'SMC({level.lower()})',
        'title': title,
        'description': description,
        'monthly_rate': rate_table.amount(level),
        'per_award': level == 'K',
    }


def get_all_smc_levels_info(rate_table: RateTable) -> List[Dict[str, Any]]:
    return [get_smc_level_description(level, rate_table) for level in BADGE_LEVELS]
