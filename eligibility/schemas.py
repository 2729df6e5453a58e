"""
Pydantic schemas for the engine's input records.

Records come from the journal's storage layer, which writes camelCase keys
(``conditionName``, ``currentRating``, ``symptomId``). Both the camelCase keys
and the snake_case attribute names are accepted.

Validators are deliberately lenient: an unparsable field becomes None/empty
instead of failing validation, so one bad record never aborts an evaluation.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

TRACKING_GOALS = ('increase', 'reeval', 'maintain')

# Upper bound for recency windows (about a century)
MAX_WINDOW_DAYS = 36500


def coerce_rating(value: Any) -> Optional[int]:
    """Parse a percentage into an int in 0-100, or None if it can't be."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip('%').strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if not isinstance(value, int):
        return None
    if 0 <= value <= 100:
        return value
    return None


def _coerce_text(value: Any) -> str:
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def _coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
        except ValueError:
            return None
    return None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    return None


class ConditionRecord(BaseModel):
    """One service-connected disability entry."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    id: Optional[str] = None
    condition_key: str = Field(default='', alias='conditionKey')
    condition_name: str = Field(default='', alias='conditionName')
    diagnostic_code: str = Field(default='', alias='diagnosticCode')
    current_rating: Optional[int] = Field(default=None, alias='currentRating')
    effective_date: Optional[date] = Field(default=None, alias='effectiveDate')
    tracking_goal: Optional[str] = Field(default=None, alias='trackingGoal')
    notes: str = ''

    @field_validator('id', mode='before')
    @classmethod
    def _id(cls, v):
        return None if v is None else _coerce_text(v)

    @field_validator('condition_key', 'condition_name', 'diagnostic_code', 'notes', mode='before')
    @classmethod
    def _text(cls, v):
        return _coerce_text(v)

    @field_validator('current_rating', mode='before')
    @classmethod
    def _rating(cls, v):
        return coerce_rating(v)

    @field_validator('effective_date', mode='before')
    @classmethod
    def _effective_date(cls, v):
        return _coerce_date(v)

    @field_validator('tracking_goal', mode='before')
    @classmethod
    def _tracking_goal(cls, v):
        return v if v in TRACKING_GOALS else None

    @property
    def rating(self) -> int:
        """Rating with unparsable values treated as 0%."""
        return self.current_rating or 0


class SymptomLogEntry(BaseModel):
    """One timestamped observation from the symptom log."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    symptom_id: str = Field(default='', alias='symptomId')
    condition_id: Optional[str] = Field(default=None, alias='conditionId')
    symptom_category: str = Field(default='', alias='symptomCategory')

    @model_validator(mode='before')
    @classmethod
    def _legacy_symptom_key(cls, data):
        # Older journal entries stored the slug under "symptom"
        if isinstance(data, dict) and not data.get('symptomId') and not data.get('symptom_id'):
            legacy = data.get('symptom')
            if isinstance(legacy, str):
                data = {**data, 'symptomId': legacy}
        return data

    @field_validator('id', 'condition_id', mode='before')
    @classmethod
    def _ids(cls, v):
        return None if v is None else _coerce_text(v)

    @field_validator('symptom_id', 'symptom_category', mode='before')
    @classmethod
    def _text(cls, v):
        return _coerce_text(v).lower()

    @field_validator('timestamp', mode='before')
    @classmethod
    def _timestamp(cls, v):
        return _coerce_datetime(v)


class RatingCardSignal(BaseModel):
    """
    Pre-computed SMC-K eligibility from a condition-specific rating analysis
    (penis, testis, ED, aphonia, hearing, female reproductive, vision,
    amputation).
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    source: str
    smc_eligible: bool = Field(default=False, alias='smcEligible')
    condition: str = ''
    supported_rating: Optional[int] = Field(default=None, alias='supportedRating')
    auto_grant: Optional[bool] = Field(default=None, alias='autoGrant')
    awards: int = 1
    qualifying: List[str] = Field(default_factory=list)

    @field_validator('source', mode='before')
    @classmethod
    def _source(cls, v):
        return _coerce_text(v).strip().lower().replace('-', '_')

    @field_validator('condition', mode='before')
    @classmethod
    def _condition(cls, v):
        return _coerce_text(v)

    @field_validator('supported_rating', mode='before')
    @classmethod
    def _rating(cls, v):
        return coerce_rating(v)

    @field_validator('awards', mode='before')
    @classmethod
    def _awards(cls, v):
        try:
            return max(1, int(v))
        except (TypeError, ValueError):
            return 1


class EvaluationRequest(BaseModel):
    """Envelope accepted by the evaluate endpoint and the smc_report command."""
    model_config = ConfigDict(extra='ignore')

    conditions: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices('conditions', 'serviceConnectedConditions'),
    )
    logs: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices('logs', 'symptomLogs'),
    )
    signals: List[Any] = Field(default_factory=list)
    rate_year: Optional[int] = None
    window_days: Optional[int] = Field(default=None, ge=1, le=MAX_WINDOW_DAYS)


def _parse_records(items: Optional[Iterable[Any]], model, label: str) -> list:
    records = []
    for index, item in enumerate(items or []):
        if isinstance(item, model):
            records.append(item)
            continue
        if not isinstance(item, dict):
            logger.warning("Skipping %s #%d: expected an object, got %s", label, index, type(item).__name__)
            continue
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping %s #%d: %d validation error(s)", label, index, e.error_count())
    return records


def parse_conditions(items: Optional[Iterable[Any]]) -> List[ConditionRecord]:
    return _parse_records(items, ConditionRecord, 'condition')


def parse_logs(items: Optional[Iterable[Any]]) -> List[SymptomLogEntry]:
    return _parse_records(items, SymptomLogEntry, 'log entry')


def parse_signals(items: Optional[Iterable[Any]]) -> List[RatingCardSignal]:
    return _parse_records(items, RatingCardSignal, 'rating signal')
