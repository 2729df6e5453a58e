"""
Services for eligibility evaluation
"""

from .eligibility_service import (
    EligibilityEngine,
    EligibilitySummary,
    evaluate,
    filter_recent_logs,
)

__all__ = [
    'EligibilityEngine',
    'EligibilitySummary',
    'evaluate',
    'filter_recent_logs',
]
