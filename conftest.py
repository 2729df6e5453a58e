"""
Pytest configuration and shared fixtures for Symptom Journal tests.

This file provides:
- Django setup for pytest runs
- Shared journal fixtures (condition records, ADL log entries)
- An API client for the REST endpoints
"""

import os
import django

# Configure Django settings before any Django imports
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'symptom_journal.settings')
django.setup()

import pytest
from rest_framework.test import APIClient


# =============================================================================
# API FIXTURES
# =============================================================================

@pytest.fixture
def api_client():
    """Return an API client for testing."""
    return APIClient()


# =============================================================================
# JOURNAL FIXTURES
# =============================================================================

@pytest.fixture
def sample_conditions():
    """
    Journal condition records: one 100% condition, additional disabilities
    combining to 60%, and a creative-organ loss.
    """
    return [
        {
            'id': 'ptsd-1',
            'conditionKey': 'ptsd',
            'conditionName': 'PTSD',
            'diagnosticCode': '9411',
            'currentRating': 100,
            'effectiveDate': '2020-02-01',
            'trackingGoal': 'maintain',
        },
        {
            'id': 'back-1',
            'conditionKey': 'lumbar',
            'conditionName': 'Lumbosacral strain',
            'diagnosticCode': '5237',
            'currentRating': 40,
        },
        {
            'id': 'knee-1',
            'conditionKey': 'knee',
            'conditionName': 'Knee instability',
            'diagnosticCode': '5257',
            'currentRating': 30,
        },
        {
            'id': 'testis-1',
            'conditionKey': 'custom',
            'conditionName': 'Removal of testis',
            'currentRating': 0,
        },
    ]


@pytest.fixture
def adl_logs():
    """ADL log entries covering three factors (dressing, hygiene, feeding)."""
    return [
        {'id': 'log-1', 'symptomId': 'adl-dressing', 'timestamp': '2025-03-01T08:00:00Z'},
        {'id': 'log-2', 'symptomId': 'adl-bathing', 'timestamp': '2025-03-02T08:00:00Z'},
        {'id': 'log-3', 'symptomId': 'adl-feeding', 'timestamp': '2025-03-03T08:00:00Z'},
        {'id': 'log-4', 'symptomId': 'knee-pain', 'timestamp': '2025-03-03T09:00:00Z'},
    ]
