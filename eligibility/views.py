"""
Eligibility API Views

- /api/v1/eligibility/evaluate/ - Combined rating and SMC estimate for a profile
- /api/v1/eligibility/rates/ - SMC rate tables by year
"""

import logging

from pydantic import ValidationError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .schemas import EvaluationRequest
from .services import evaluate as evaluate_profile, filter_recent_logs
from .smc_rates import AVAILABLE_RATE_YEARS, DEFAULT_RATE_YEAR, get_rate_table
from .va_special_compensation import get_all_smc_levels_info

logger = logging.getLogger(__name__)


def _validation_errors(error: ValidationError) -> list:
    return [
        {
            'loc': [str(part) for part in err.get('loc', ())],
            'msg': err.get('msg', ''),
            'type': err.get('type', ''),
        }
        for err in error.errors()
    ]


@api_view(['POST'])
@permission_classes([AllowAny])
def evaluate(request):
    """
    Evaluate SMC eligibility for a journal profile.

    POST /api/v1/eligibility/evaluate/
    {
        "conditions": [{"conditionName": "PTSD", "currentRating": 70}, ...],
        "logs": [{"symptomId": "adl-dressing", "timestamp": "2025-01-02T10:00:00Z"}, ...],
        "signals": [{"source": "testis", "smcEligible": true}],   (optional)
        "rate_year": 2026,                                          (optional)
        "window_days": 90                                           (optional)
    }

    The journal export keys "serviceConnectedConditions" and "symptomLogs"
    are accepted as well.

    Response: EligibilitySummary as JSON
    """
    if not isinstance(request.data, dict):
        return Response(
            {'error': 'Request body must be a JSON object'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        payload = EvaluationRequest.model_validate(request.data)
    except ValidationError as e:
        logger.info("Rejected eligibility request: %d validation error(s)", e.error_count())
        return Response(
            {'error': 'Invalid request', 'details': _validation_errors(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logs = payload.logs
    if payload.window_days:
        logs = filter_recent_logs(logs, days=payload.window_days)

    summary = evaluate_profile(
        payload.conditions,
        logs,
        rate_table=get_rate_table(payload.rate_year),
        signals=payload.signals,
    )
    return Response(summary.to_dict())


@api_view(['GET'])
@permission_classes([AllowAny])
def rates(request):
    """
    SMC rates for one year (?year=2025), or the configured year.

    GET /api/v1/eligibility/rates/

    Response:
    {
        "available_years": [2026, 2025, 2024],
        "default_year": 2026,
        "table": {"year": 2026, "rates": {...}},
        "levels": [{"level": "K", "monthly_rate": 139.87, ...}, ...]
    }
    """
    year = request.query_params.get('year')
    if year is not None:
        try:
            year = int(year)
        except ValueError:
            return Response(
                {'error': 'year must be an integer'},
                status=status.HTTP_400_BAD_REQUEST
            )

    table = get_rate_table(year)
    return Response({
        'available_years': AVAILABLE_RATE_YEARS,
        'default_year': DEFAULT_RATE_YEAR,
        'table': table.to_dict(),
        'levels': get_all_smc_levels_info(table),
    })
