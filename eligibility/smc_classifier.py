"""
SMC-K category classification for service-connected conditions.

Matching is keyword/code based, not exact. Each category is one
ClassificationRule in SMC_K_RULES, evaluated by the single generic
``rule_matches`` function:

- code_patterns: substring containment against the stringified diagnostic
  code ("DC 7522", "7520-7521" and "7522" all contain "7522")
- keywords: substring containment against the lower-cased name or key, in
  either direction (keyword in text, or text of two or more characters in keyword)
- keyword_groups: every word of a group must appear in the name
- requires_rating: the condition must be rated exactly at this value

References:
- 38 CFR § 3.350(a) - Special monthly compensation under 38 U.S.C. 1114(k)
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .schemas import ConditionRecord


CREATIVE_ORGAN = 'CREATIVE_ORGAN'
APHONIA = 'APHONIA'
DEAFNESS = 'DEAFNESS'
BLINDNESS = 'BLINDNESS'
EXTREMITY = 'EXTREMITY'


@dataclass(frozen=True)
class ClassificationRule:
    """Declarative SMC-K matching rule for one category"""
    category: str
    category_name: str
    code_patterns: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    keyword_groups: Tuple[Tuple[str, ...], ...] = ()
    match_key: bool = True
    exclude_keywords: Tuple[str, ...] = ()
    requires_rating: Optional[int] = None
    # None means the category is always an anatomical loss (auto-grant).
    # Otherwise auto-grant only when a matched name/key has one of these words.
    auto_grant_keywords: Optional[Tuple[str, ...]] = None
    per_condition: bool = False
    sub_labels: Tuple[Tuple[Tuple[str, ...], str], ...] = ()


@dataclass
class CategoryMatch:
    """One qualifying SMC-K category and the conditions that matched it"""
    category: str
    category_name: str
    matched_conditions: List[ConditionRecord] = field(default_factory=list)
    auto_grant: bool = True
    awards: int = 1
    source: str = 'conditions'

    def to_dict(self) -> dict:
        return {
            'category': self.category,
            'category_name': self.category_name,
            'matched_conditions': [
                {'id': c.id, 'condition_name': c.condition_name, 'current_rating': c.current_rating}
                for c in self.matched_conditions
            ],
            'auto_grant': self.auto_grant,
            'awards': self.awards,
            'source': self.source,
        }


# Amputation and loss-of-use codes, upper (5120-5139) and lower (5160-5167) extremity
AMPUTATION_CODES = tuple(str(dc) for dc in range(5120, 5140)) + tuple(str(dc) for dc in range(5160, 5168))

# Shorter names or keys never match as a substring of a keyword
MIN_REVERSE_MATCH_LENGTH = 2

SMC_K_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        category=CREATIVE_ORGAN,
        category_name='Loss of Creative Organ',
        code_patterns=('7520', '7521', '7522', '7523', '7524', '7617', '7618', '7619', '7632'),
        keywords=(
            'penis', 'testis', 'testes', 'testicle', 'testicular',
            'erectile', 'impotence', ' ed ',
            'ovary', 'ovarian', 'ovar',
            'uterus', 'uterine', 'hysterectomy',
            'creative organ', 'loss of use of creative',
            'sexual arousal disorder',
        ),
        # ED and arousal disorder need a nexus opinion; removal/atrophy does not
        auto_grant_keywords=('penis', 'testis', 'testes', 'testicle', 'ovary', 'uterus', 'hysterectomy'),
    ),
    ClassificationRule(
        category=APHONIA,
        category_name='Complete Organic Aphonia',
        code_patterns=('6519',),
        keywords=('aphonia',),
        requires_rating=100,
    ),
    ClassificationRule(
        category=DEAFNESS,
        category_name='Complete Bilateral Deafness',
        code_patterns=('6100',),
        keyword_groups=(('deaf', 'bilateral'),),
        requires_rating=100,
    ),
    ClassificationRule(
        category=BLINDNESS,
        category_name='Blindness in One Eye',
        code_patterns=('6061', '6062', '6063', '6064', '6065', '6066', '6067', '6068', '6069', '6070'),
        keyword_groups=(('blind', 'one eye'),),
    ),
    ClassificationRule(
        category=EXTREMITY,
        category_name='Loss of Extremity/Limb',
        code_patterns=AMPUTATION_CODES,
        keywords=('amputation', 'loss of use'),
        match_key=False,
        exclude_keywords=('creative',),
        per_condition=True,
        sub_labels=(
            (('hand',), 'Loss of Use of Hand'),
            (('foot', 'feet'), 'Loss of Use of Foot'),
            (('leg',), 'Loss of Leg'),
            (('arm',), 'Loss of Arm'),
        ),
    ),
)


def _keyword_hit(keyword: str, text: str) -> bool:
    if not text:
        return False
    # Padding lets space-delimited keywords such as " ed " match whole words only
    if keyword in f' {text} ':
        return True
    return len(text) >= MIN_REVERSE_MATCH_LENGTH and text in keyword


def rule_matches(rule: ClassificationRule, condition: ConditionRecord) -> bool:
    """True if a single condition satisfies a rule."""
    name = condition.condition_name.lower()
    key = condition.condition_key.lower()
    dc = condition.diagnostic_code

    if rule.requires_rating is not None and condition.current_rating != rule.requires_rating:
        return False
    if any(word in name for word in rule.exclude_keywords):
        return False

    if dc and any(code in dc for code in rule.code_patterns):
        return True

    texts = (name, key) if rule.match_key else (name,)
    if any(_keyword_hit(keyword, text) for keyword in rule.keywords for text in texts):
        return True

    return any(all(word in name for word in group) for group in rule.keyword_groups)


def _is_auto_grant(rule: ClassificationRule, conditions: List[ConditionRecord]) -> bool:
    if rule.auto_grant_keywords is None:
        return True
    for c in conditions:
        name = c.condition_name.lower()
        key = c.condition_key.lower()
        if any(word in name or word in key for word in rule.auto_grant_keywords):
            return True
    return False


def _sub_label(rule: ClassificationRule, condition: ConditionRecord) -> str:
    name = condition.condition_name.lower()
    for words, label in rule.sub_labels:
        if any(word in name for word in words):
            return label
    return rule.category_name


def classify(
    conditions: Iterable[ConditionRecord],
    rules: Iterable[ClassificationRule] = SMC_K_RULES,
) -> List[CategoryMatch]:
    """
    Match conditions against the SMC-K category rules.

    A category yields one CategoryMatch (one award unit) no matter how many
    conditions hit it, except per-condition categories (extremity loss),
    which yield one match per distinct condition, i.e. one award per limb.
    """
    conditions = list(conditions or [])
    matches = []

    for rule in rules:
        hits = [c for c in conditions if rule_matches(rule, c)]
        if not hits:
            continue

        if rule.per_condition:
            seen = set()
            for c in hits:
                identity = c.id if c.id is not None else id(c)
                if identity in seen:
                    continue
                seen.add(identity)
                matches.append(CategoryMatch(
                    category=rule.category,
                    category_name=_sub_label(rule, c),
                    matched_conditions=[c],
                    auto_grant=_is_auto_grant(rule, [c]),
                ))
        else:
            matches.append(CategoryMatch(
                category=rule.category,
                category_name=rule.category_name,
                matched_conditions=hits,
                auto_grant=_is_auto_grant(rule, hits),
            ))

    return matches
