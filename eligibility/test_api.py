"""
Tests for the Eligibility API

Tests the REST endpoints:
- Evaluate (combined rating + SMC estimate)
- Rate tables
"""

import pytest
from django.urls import reverse
from rest_framework import status


@pytest.fixture
def evaluate_url():
    return reverse('eligibility:evaluate')


@pytest.fixture
def rates_url():
    return reverse('eligibility:rates')


class TestEvaluateEndpoint:
    """Tests for POST /api/v1/eligibility/evaluate/"""

    def test_empty_profile(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['combined_rating'] == 0
        assert response.data['total_monthly'] == 0
        assert not any(response.data['badges'].values())
        assert response.data['adl']['has_data'] is False

    def test_housebound_with_k(self, api_client, evaluate_url, sample_conditions):
        response = api_client.post(evaluate_url, {'conditions': sample_conditions}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['combined_rating'] == 100
        assert response.data['badges']['S'] is True
        assert response.data['badges']['K'] is True
        assert response.data['base_level'] == 'S'
        assert response.data['k_added'] is True
        assert response.data['total_monthly'] == pytest.approx(4108.37 + 139.87)

    def test_journal_export_keys(self, api_client, evaluate_url, sample_conditions, adl_logs):
        response = api_client.post(evaluate_url, {
            'serviceConnectedConditions': sample_conditions,
            'symptomLogs': adl_logs,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['adl']['factors_affected'] == 3
        assert response.data['adl']['potential_level'] == 'L'
        assert response.data['base_level'] == 'L'

    def test_rate_year(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'conditions': [{'conditionName': 'Removal of testis', 'currentRating': 0}],
            'rate_year': 2025,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['rate_year'] == 2025
        assert response.data['smc_k']['rate'] == 136.06

    def test_unknown_rate_year_uses_default(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {'rate_year': 1990}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['rate_year'] == 2026

    def test_window_days_filters_logs(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'logs': [
                {'symptomId': 'adl-dressing', 'timestamp': '2001-01-01T00:00:00Z'},
                {'symptomId': 'adl-feeding'},
            ],
            'window_days': 30,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['adl']['has_data'] is False

    def test_window_days_too_large(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'logs': [{'symptomId': 'adl-dressing', 'timestamp': '2025-01-01T00:00:00Z'}],
            'window_days': 1000000,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        locations = {tuple(d['loc']) for d in response.data['details']}
        assert ('window_days',) in locations

    def test_window_days_upper_bound_accepted(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'logs': [{'symptomId': 'adl-dressing', 'timestamp': '2025-01-01T00:00:00Z'}],
            'window_days': 36500,
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['adl']['has_data'] is True

    def test_signals(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'signals': [{'source': 'amputation', 'smcEligible': True, 'awards': 2}],
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['smc_k']['total_awards'] == 2
        assert response.data['total_monthly'] == pytest.approx(2 * 139.87)

    def test_malformed_records_are_skipped(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {
            'conditions': ['oops', {'conditionName': 'Knee', 'currentRating': 'ten'}, {'currentRating': 30}],
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['combined_rating'] == 30

    def test_non_object_body(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, [1, 2], format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data

    def test_invalid_envelope(self, api_client, evaluate_url):
        response = api_client.post(evaluate_url, {'conditions': 'PTSD', 'window_days': 0}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        locations = {tuple(d['loc']) for d in response.data['details']}
        assert ('conditions',) in locations
        assert ('window_days',) in locations

    def test_get_not_allowed(self, api_client, evaluate_url):
        response = api_client.get(evaluate_url)

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


class TestRatesEndpoint:
    """Tests for GET /api/v1/eligibility/rates/"""

    def test_default_year(self, api_client, rates_url):
        response = api_client.get(rates_url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['available_years'] == [2026, 2025, 2024]
        assert response.data['table']['year'] == 2026
        assert response.data['table']['rates']['K'] == {'rate': 139.87}
        levels = [level['level'] for level in response.data['levels']]
        assert levels == ['K', 'S', 'L', 'M', 'N', 'O', 'R1', 'R2', 'T']

    def test_specific_year(self, api_client, rates_url):
        response = api_client.get(rates_url, {'year': 2024})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['table']['year'] == 2024
        s_level = next(level for level in response.data['levels'] if level['level'] == 'S')
        assert s_level['monthly_rate'] == 4430.63

    def test_invalid_year(self, api_client, rates_url):
        response = api_client.get(rates_url, {'year': 'last'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
