"""
Tests for the eligibility app - combined rating and Special Monthly Compensation.

Covers:
- VA Math combination (va_math.py)
- Input record parsing (schemas.py)
- SMC rate tables (smc_rates.py)
- SMC-K category classification (smc_classifier.py)
- ADL factor scoring (adl_factors.py)
- SMC-K/S/L and higher-level evaluators, tier aggregation
- Eligibility service and the smc_report command
"""

import copy
import json
import os
import tempfile
from datetime import date, datetime, timedelta, timezone
from io import StringIO
from itertools import permutations
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from eligibility.adl_factors import NO_DATA_MESSAGE, ADLResult, score_adl
from eligibility.schemas import (
    ConditionRecord,
    EvaluationRequest,
    RatingCardSignal,
    SymptomLogEntry,
    coerce_rating,
    parse_conditions,
    parse_signals,
)
from eligibility.services import evaluate, filter_recent_logs
from eligibility.smc_classifier import (
    APHONIA,
    BLINDNESS,
    CREATIVE_ORGAN,
    DEAFNESS,
    EXTREMITY,
    classify,
)
from eligibility.smc_rates import DEFAULT_RATE_TABLE, get_rate_table
from eligibility.va_math import combine, combine_detailed, round_to_nearest_10, validate_rating
from eligibility.va_special_compensation import (
    HigherLevelsResult,
    LevelFinding,
    SMCKResult,
    SMCLResult,
    SMCSResult,
    aggregate,
    conditions_of_type,
    evaluate_higher_levels,
    evaluate_k,
    evaluate_l,
    evaluate_s,
    select_hundred_percent_condition,
)

RATES = DEFAULT_RATE_TABLE
K_RATE = 139.87
S_RATE = 4108.37
L_RATE = 4993.35
R1_RATE = 9973.73


def make_conditions(*entries):
    """Build ConditionRecords from (name, rating) or (name, rating, code) tuples."""
    records = []
    for index, entry in enumerate(entries):
        name, rating = entry[0], entry[1]
        code = entry[2] if len(entry) > 2 else ''
        records.append(ConditionRecord(
            id=f'c{index}',
            condition_name=name,
            current_rating=rating,
            diagnostic_code=code,
        ))
    return records


def make_logs(*slugs):
    return [SymptomLogEntry(id=f'l{i}', symptom_id=slug) for i, slug in enumerate(slugs)]


# =============================================================================
# VA MATH
# =============================================================================

class TestCombine(SimpleTestCase):
    """Whole-person combination - 38 CFR § 4.25."""

    def test_known_fixture_50_30(self):
        """50% + 30% leaves 35 efficiency, 65 rounds to 70."""
        self.assertEqual(combine([50, 30]), 70)

    def test_empty_and_zero_inputs(self):
        self.assertEqual(combine([]), 0)
        self.assertEqual(combine([0, 0, 0]), 0)
        self.assertEqual(combine(None), 0)

    def test_single_100(self):
        self.assertEqual(combine([100]), 100)

    def test_order_independent(self):
        ratings = [60, 40, 20, 10]
        for order in permutations(ratings):
            with self.subTest(order=order):
                self.assertEqual(combine(list(order)), 80)

    def test_result_bounded_multiple_of_10(self):
        cases = [[10], [10, 10], [90, 90, 90], [100, 100], [20, 30, 40, 50, 60, 70], [70, 10]]
        for ratings in cases:
            with self.subTest(ratings=ratings):
                result = combine(ratings)
                self.assertGreaterEqual(result, 0)
                self.assertLessEqual(result, 100)
                self.assertEqual(result % 10, 0)

    def test_out_of_range_values_ignored(self):
        """Negative, >100, non-integer and boolean values contribute nothing."""
        self.assertEqual(combine([50, -20, 150, 'abc', None, True, 30]), 70)

    def test_raw_58_rounds_to_60(self):
        """40% + 30% is 58 raw, which rounds to 60."""
        self.assertEqual(combine([40, 30]), 60)


class TestRoundToNearest10(SimpleTestCase):

    def test_half_rounds_up(self):
        for raw, expected in [(65, 70), (75, 80), (45, 50), (5, 10)]:
            with self.subTest(raw=raw):
                self.assertEqual(round_to_nearest_10(raw), expected)

    def test_below_half_rounds_down(self):
        for raw, expected in [(64.9, 60), (54.99, 50), (4, 0)]:
            with self.subTest(raw=raw):
                self.assertEqual(round_to_nearest_10(raw), expected)


class TestValidateRating(SimpleTestCase):

    def test_valid_ratings(self):
        for rating in range(0, 101, 10):
            with self.subTest(rating=rating):
                self.assertTrue(validate_rating(rating))

    def test_invalid_ratings(self):
        for rating in [-10, 5, 55, 110, 50.0, '50', True, None]:
            with self.subTest(rating=rating):
                self.assertFalse(validate_rating(rating))


class TestCombineDetailed(SimpleTestCase):

    def test_breakdown_steps(self):
        result = combine_detailed([('Knee', 30), ('PTSD', 50)])
        self.assertEqual(result.combined_rating, 70)
        self.assertEqual(result.total_disability, 65.0)
        self.assertEqual(result.total_efficiency, 35.0)

        first, second = result.breakdown
        self.assertEqual((first.condition_name, first.rating), ('PTSD', 50))
        self.assertEqual(first.disability_added, 50.0)
        self.assertEqual(first.remaining_efficiency, 50.0)
        self.assertEqual((second.condition_name, second.rating), ('Knee', 30))
        self.assertEqual(second.disability_added, 15.0)
        self.assertEqual(second.remaining_efficiency, 35.0)

    def test_accepts_condition_records_and_matches_combine(self):
        conditions = make_conditions(('Tinnitus', 10), ('Back', 40), ('Migraine', 30), ('Scar', 0))
        result = combine_detailed(conditions)
        self.assertEqual(result.combined_rating, combine([10, 40, 30, 0]))
        self.assertEqual(len(result.breakdown), 3)

    def test_empty(self):
        result = combine_detailed([])
        self.assertEqual(result.combined_rating, 0)
        self.assertEqual(result.breakdown, [])


# =============================================================================
# INPUT RECORDS
# =============================================================================

class TestSchemas(SimpleTestCase):

    def test_coerce_rating(self):
        cases = [
            ('70%', 70), (' 30 ', 30), (70.0, 70), (40, 40),
            (70.5, None), (True, None), (150, None), (-10, None), ('', None), ('seventy', None), (None, None),
        ]
        for value, expected in cases:
            with self.subTest(value=value):
                self.assertEqual(coerce_rating(value), expected)

    def test_condition_from_journal_keys(self):
        record = ConditionRecord.model_validate({
            'id': 7,
            'conditionKey': 'ptsd',
            'conditionName': 'PTSD',
            'diagnosticCode': 9411,
            'currentRating': '70',
            'effectiveDate': '2021-03-04',
            'trackingGoal': 'increase',
        })
        self.assertEqual(record.id, '7')
        self.assertEqual(record.diagnostic_code, '9411')
        self.assertEqual(record.current_rating, 70)
        self.assertEqual(record.effective_date, date(2021, 3, 4))
        self.assertEqual(record.tracking_goal, 'increase')

    def test_unparsable_fields_become_empty(self):
        record = ConditionRecord.model_validate({
            'conditionName': None,
            'currentRating': 'abc',
            'effectiveDate': 'not a date',
            'trackingGoal': 'win',
        })
        self.assertEqual(record.condition_name, '')
        self.assertIsNone(record.current_rating)
        self.assertEqual(record.rating, 0)
        self.assertIsNone(record.effective_date)
        self.assertIsNone(record.tracking_goal)

    def test_log_entry_legacy_symptom_key(self):
        entry = SymptomLogEntry.model_validate({'symptom': 'ADL-Dressing', 'timestamp': '2025-01-01T10:00:00Z'})
        self.assertEqual(entry.symptom_id, 'adl-dressing')
        self.assertEqual(entry.timestamp.utcoffset(), timedelta(0))

    def test_parse_skips_non_objects(self):
        with self.assertLogs('eligibility.schemas', level='WARNING') as logs:
            records = parse_conditions([{'conditionName': 'Knee', 'currentRating': 10}, 'garbage', None, 5])
        self.assertEqual(len(records), 1)
        self.assertEqual(len(logs.records), 3)

    def test_parse_skips_invalid_signal(self):
        with self.assertLogs('eligibility.schemas', level='WARNING'):
            signals = parse_signals([{'smcEligible': True}, {'source': 'aphonia', 'smcEligible': True}])
        self.assertEqual([s.source for s in signals], ['aphonia'])

    def test_request_accepts_export_keys(self):
        request = EvaluationRequest.model_validate({
            'serviceConnectedConditions': [{'conditionName': 'PTSD'}],
            'symptomLogs': [{'symptomId': 'adl-dressing'}],
            'profileName': 'ignored',
        })
        self.assertEqual(len(request.conditions), 1)
        self.assertEqual(len(request.logs), 1)
        self.assertEqual(request.signals, [])


# =============================================================================
# RATE TABLES
# =============================================================================

class TestRateTables(SimpleTestCase):

    def test_default_table(self):
        self.assertEqual(RATES.year, 2026)
        self.assertEqual(RATES.k_rate, K_RATE)
        self.assertEqual(RATES.amount('S'), S_RATE)
        self.assertEqual(RATES.amount('K'), K_RATE)

    def test_with_spouse_column(self):
        self.assertEqual(RATES.amount('S', with_spouse=True), 4374.37)
        table_2025 = get_rate_table(2025)
        self.assertEqual(table_2025.amount('S', with_spouse=True), table_2025.amount('S'))

    def test_unknown_tiers_worth_zero(self):
        self.assertEqual(RATES.amount(None), 0.0)
        self.assertEqual(RATES.amount('Z'), 0.0)
        self.assertEqual(get_rate_table(2025).amount('L_HALF'), 0.0)

    def test_year_lookup(self):
        self.assertEqual(get_rate_table(2025).k_rate, 136.06)
        self.assertEqual(get_rate_table(2024).amount('L'), 4847.05)
        self.assertEqual(get_rate_table(1999).year, 2026)

    @override_settings(SMC_RATE_YEAR=2024)
    def test_configured_year(self):
        self.assertEqual(get_rate_table().year, 2024)

    def test_table_is_read_only(self):
        with self.assertRaises(TypeError):
            RATES.rates['K'] = {'rate': 1.0}


# =============================================================================
# SMC-K CLASSIFICATION
# =============================================================================

class TestClassify(SimpleTestCase):

    def _categories(self, conditions):
        return [m.category for m in classify(conditions)]

    def test_no_conditions(self):
        self.assertEqual(classify([]), [])
        self.assertEqual(classify(None), [])

    def test_creative_organ_anatomical_loss_auto_grants(self):
        matches = classify(make_conditions(('Removal of testis', 0)))
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].category, CREATIVE_ORGAN)
        self.assertTrue(matches[0].auto_grant)

    def test_erectile_dysfunction_needs_nexus(self):
        matches = classify(make_conditions(('Erectile dysfunction', 0, '7522')))
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].category, CREATIVE_ORGAN)
        self.assertFalse(matches[0].auto_grant)

    def test_code_substring_matches(self):
        for code in ['7522', 'DC 7522', '7520-7522']:
            with self.subTest(code=code):
                self.assertEqual(self._categories(make_conditions(('Condition', 20, code))), [CREATIVE_ORGAN])

    def test_ed_keyword_is_whole_word(self):
        for name in ['Fractured wrist', 'Limited flexion, knee (sprained)', 'Tendonitis, elbow']:
            with self.subTest(name=name):
                self.assertEqual(classify(make_conditions((name, 10))), [])
        self.assertEqual(self._categories(make_conditions(('Loss of ED function', 0))), [CREATIVE_ORGAN])

    def test_condition_key_matches_creative_organ(self):
        removal = classify([ConditionRecord(condition_key='penis', condition_name='Genitourinary condition')])
        self.assertEqual([m.category for m in removal], [CREATIVE_ORGAN])
        self.assertTrue(removal[0].auto_grant)

        ed = classify([ConditionRecord(condition_key='ed', condition_name='Genitourinary condition')])
        self.assertEqual([m.category for m in ed], [CREATIVE_ORGAN])
        self.assertFalse(ed[0].auto_grant)

    def test_extremity_ignores_condition_key(self):
        conditions = [ConditionRecord(condition_key='amputation', condition_name='Residual limb pain', current_rating=20)]
        self.assertEqual(classify(conditions), [])

    def test_name_inside_keyword_matches(self):
        for name in ['Hyster', 'Peni', 'Creative']:
            with self.subTest(name=name):
                self.assertEqual(self._categories(make_conditions((name, 0))), [CREATIVE_ORGAN])

    def test_single_character_names_never_match(self):
        for name in ['X', 'a', 'e', ' ']:
            with self.subTest(name=name):
                self.assertEqual(classify(make_conditions((name, 0))), [])
        self.assertEqual(classify([ConditionRecord(condition_key='s', condition_name='Knee')]), [])

    def test_two_creative_conditions_count_once(self):
        matches = classify(make_conditions(('Removal of testis', 0), ('Erectile dysfunction', 0)))
        self.assertEqual(len(matches), 1)
        self.assertEqual(len(matches[0].matched_conditions), 2)
        self.assertTrue(matches[0].auto_grant)

    def test_aphonia_requires_100(self):
        self.assertEqual(classify(make_conditions(('Aphonia', 60))), [])
        self.assertEqual(self._categories(make_conditions(('Complete organic aphonia', 100))), [APHONIA])
        self.assertEqual(self._categories(make_conditions(('Larynx', 100, '6519'))), [APHONIA])

    def test_deafness_requires_100(self):
        self.assertEqual(classify(make_conditions(('Bilateral deafness', 90))), [])
        self.assertEqual(classify(make_conditions(('Hearing loss', 10, '6100'))), [])
        self.assertEqual(self._categories(make_conditions(('Bilateral deafness', 100))), [DEAFNESS])

    def test_blindness_one_eye(self):
        self.assertEqual(self._categories(make_conditions(('Blindness, one eye', 30))), [BLINDNESS])
        self.assertEqual(self._categories(make_conditions(('Eye condition', 30, '6066'))), [BLINDNESS])

    def test_extremity_one_award_per_limb(self):
        matches = classify(make_conditions(
            ('Loss of use of right hand', 70, '5125'),
            ('Amputation, left leg below knee', 40),
        ))
        self.assertEqual([m.category for m in matches], [EXTREMITY, EXTREMITY])
        self.assertEqual(
            [m.category_name for m in matches],
            ['Loss of Use of Hand', 'Loss of Leg'],
        )

    def test_extremity_excludes_creative_organ_loss_of_use(self):
        self.assertEqual(self._categories(make_conditions(('Loss of use of creative organ', 0))), [CREATIVE_ORGAN])

    def test_unknown_codes_never_match(self):
        self.assertEqual(classify(make_conditions(('PTSD', 70, '9411'), ('Tinnitus', 10, '6260'))), [])

    def test_malformed_records_do_not_raise(self):
        conditions = parse_conditions([{'currentRating': 'x'}, {'conditionName': 12345}, {}])
        self.assertEqual(classify(conditions), [])


# =============================================================================
# SMC-K EVALUATION
# =============================================================================

class TestEvaluateK(SimpleTestCase):

    def _four_categories(self):
        return classify(make_conditions(
            ('Removal of testis', 0),
            ('Complete organic aphonia', 100),
            ('Bilateral deafness', 100),
            ('Blindness, one eye', 30),
        ))

    def test_cap_at_three_awards(self):
        result = evaluate_k(self._four_categories(), RATES)
        self.assertTrue(result.eligible)
        self.assertEqual(result.total_awards, 4)
        self.assertEqual(result.capped_awards, 3)
        self.assertAlmostEqual(result.monthly_amount, 3 * K_RATE, places=2)
        self.assertTrue(result.max_reached)

    def test_no_matches(self):
        result = evaluate_k([], RATES)
        self.assertFalse(result.eligible)
        self.assertEqual(result.monthly_amount, 0)

    def test_rate_table_changes_amount_only(self):
        matches = classify(make_conditions(('Removal of testis', 0)))
        result_2026 = evaluate_k(matches, RATES)
        result_2024 = evaluate_k(matches, get_rate_table(2024))
        self.assertEqual(result_2026.capped_awards, result_2024.capped_awards)
        self.assertEqual(result_2024.monthly_amount, 131.64)

    def test_signal_replaces_classifier_match(self):
        matches = classify(make_conditions(('Removal of testis', 0)))
        signals = [RatingCardSignal.model_validate({'source': 'testis', 'smcEligible': True})]
        result = evaluate_k(matches, RATES, signals)
        self.assertEqual(result.total_awards, 1)
        self.assertEqual(result.eligible_categories[0].source, 'rating_card:testis')

    def test_repeat_signals_in_one_category_count_once(self):
        signals = [
            RatingCardSignal.model_validate({'source': 'penis', 'smcEligible': True}),
            RatingCardSignal.model_validate({'source': 'testis', 'smcEligible': True}),
        ]
        self.assertEqual(evaluate_k([], RATES, signals).total_awards, 1)

    def test_hearing_signal_needs_100(self):
        low = [RatingCardSignal.model_validate({'source': 'hearing', 'smcEligible': True, 'supportedRating': 50})]
        full = [RatingCardSignal.model_validate({'source': 'hearing', 'supportedRating': 100})]
        self.assertFalse(evaluate_k([], RATES, low).eligible)
        self.assertTrue(evaluate_k([], RATES, full).eligible)

    def test_amputation_signal_awards(self):
        signals = [RatingCardSignal.model_validate({
            'source': 'amputation', 'smcEligible': True, 'awards': 2, 'qualifying': ['hand', 'foot'],
        })]
        result = evaluate_k([], RATES, signals)
        self.assertEqual(result.total_awards, 2)
        self.assertIn('hand, foot', result.eligible_categories[0].category_name)

    def test_ed_signal_never_auto_grants(self):
        signals = [RatingCardSignal.model_validate({
            'source': 'erectile-dysfunction', 'smcEligible': True, 'autoGrant': True,
        })]
        result = evaluate_k([], RATES, signals)
        self.assertFalse(result.eligible_categories[0].auto_grant)

    def test_ineligible_and_unknown_signals_ignored(self):
        signals = [
            RatingCardSignal.model_validate({'source': 'vision', 'smcEligible': False}),
            RatingCardSignal.model_validate({'source': 'knee', 'smcEligible': True}),
        ]
        self.assertEqual(evaluate_k([], RATES, signals).total_awards, 0)


# =============================================================================
# SMC-S
# =============================================================================

class TestEvaluateS(SimpleTestCase):
    """SMC(s): one disability at 100% plus additional disabilities combining to 60%+."""

    def test_no_condition_at_100(self):
        result = evaluate_s(make_conditions(('PTSD', 90), ('Back', 60)), RATES)
        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, 'no condition at 100%')
        self.assertEqual(result.monthly_amount, 0)

    def test_additional_exactly_60(self):
        result = evaluate_s(make_conditions(('PTSD', 100), ('Back', 60)), RATES)
        self.assertTrue(result.eligible)
        self.assertEqual(result.additional_combined, 60)
        self.assertEqual(result.monthly_amount, S_RATE)

    def test_additional_rounding_to_60(self):
        """40% + 30% is 58 raw; VA rounding makes it 60."""
        result = evaluate_s(make_conditions(('PTSD', 100), ('Back', 40), ('Knee', 30)), RATES)
        self.assertTrue(result.eligible)

    def test_additional_below_60(self):
        for others in [[50], [40, 20], [30, 20]]:
            with self.subTest(others=others):
                conditions = make_conditions(('PTSD', 100), *[(f'C{r}', r) for r in others])
                result = evaluate_s(conditions, RATES)
                self.assertFalse(result.eligible)
                self.assertEqual(result.monthly_amount, 0)

    def test_zero_rated_conditions_excluded(self):
        result = evaluate_s(make_conditions(('PTSD', 100), ('Back', 60), ('Scar', 0)), RATES)
        self.assertEqual([c.condition_name for c in result.additional_conditions], ['Back'])

    def test_second_100_counts_as_additional(self):
        result = evaluate_s(make_conditions(('PTSD', 100), ('ALS', 100)), RATES)
        self.assertTrue(result.eligible)
        self.assertEqual(result.additional_combined, 100)

    def test_tie_break_earliest_effective_date(self):
        conditions = [
            ConditionRecord(id='late', condition_name='Later', current_rating=100, effective_date=date(2021, 1, 1)),
            ConditionRecord(id='undated', condition_name='Undated', current_rating=100),
            ConditionRecord(id='early', condition_name='Earlier', current_rating=100, effective_date=date(2019, 5, 1)),
        ]
        index, selected = select_hundred_percent_condition(conditions)
        self.assertEqual((index, selected.id), (2, 'early'))

    def test_tie_break_input_order_without_dates(self):
        conditions = make_conditions(('First', 100), ('Second', 100))
        self.assertEqual(select_hundred_percent_condition(conditions)[1].id, 'c0')


# =============================================================================
# ADL FACTORS
# =============================================================================

class TestScoreADL(SimpleTestCase):

    def test_no_adl_logs(self):
        result = score_adl(make_logs('headache', 'knee-pain'), RATES)
        self.assertFalse(result.has_data)
        self.assertEqual(result.message, NO_DATA_MESSAGE)
        self.assertEqual(set(result.factors), {
            'dressing', 'hygiene', 'feeding', 'toileting', 'mobility', 'safety', 'cognitive',
        })
        self.assertFalse(any(result.factors.values()))

    def test_factor_buckets(self):
        cases = [
            ('adl-dressing', 'dressing'),
            ('adl-bathing', 'hygiene'),
            ('adl-feeding', 'feeding'),
            ('adl-bladder-accident', 'toileting'),
            ('adl-wheelchair-transfer', 'mobility'),
            ('adl-needs-supervision', 'safety'),
            ('adl-memory-lapse', 'cognitive'),
        ]
        for slug, factor in cases:
            with self.subTest(slug=slug):
                result = score_adl(make_logs(slug), RATES)
                self.assertTrue(result.factors[factor])
                self.assertEqual(result.factors_affected, 1)

    def test_category_field_marks_adl(self):
        logs = [SymptomLogEntry(symptom_id='needs-help-dressing', symptom_category='adl')]
        result = score_adl(logs, RATES)
        self.assertTrue(result.has_data)
        self.assertTrue(result.factors['dressing'])

    def test_nursing_level_beats_bedridden(self):
        result = score_adl(make_logs('adl-nursing-level-care', 'adl-bedridden'), RATES)
        self.assertTrue(result.flags.bedridden)
        self.assertTrue(result.flags.nursing_level)
        self.assertEqual(result.potential_level, 'R')
        self.assertEqual(result.potential_amount, R1_RATE)

    def test_total_dependence_with_safety_is_r(self):
        result = score_adl(make_logs('adl-total-dependence', 'adl-safety-supervision'), RATES)
        self.assertEqual(result.potential_level, 'R')

    def test_total_dependence_alone_is_l(self):
        result = score_adl(make_logs('adl-total-dependence'), RATES)
        self.assertEqual(result.potential_level, 'L')
        self.assertEqual(result.potential_amount, L_RATE)

    def test_three_factors_is_l(self):
        result = score_adl(make_logs('adl-dressing', 'adl-bathing', 'adl-feeding'), RATES)
        self.assertEqual(result.factors_affected, 3)
        self.assertEqual(result.potential_level, 'L')
        self.assertEqual(result.message, '3 of 7 ADL factors documented')

    def test_housebound_is_s(self):
        result = score_adl(make_logs('adl-housebound'), RATES)
        self.assertEqual(result.potential_level, 'S')
        self.assertEqual(result.potential_amount, S_RATE)

    def test_two_factors_no_tier(self):
        result = score_adl(make_logs('adl-dressing', 'adl-dressing', 'adl-feeding'), RATES)
        self.assertEqual(result.total_logs, 3)
        self.assertEqual(result.factors_affected, 2)
        self.assertIsNone(result.potential_level)
        self.assertEqual(result.potential_amount, 0)

    @override_settings(ADL_FACTOR_THRESHOLD=2)
    def test_configured_factor_threshold(self):
        result = score_adl(make_logs('adl-dressing', 'adl-feeding'), RATES)
        self.assertEqual(result.potential_level, 'L')


# =============================================================================
# SMC-L AND HIGHER LEVELS
# =============================================================================

class TestEvaluateL(SimpleTestCase):

    def test_bilateral_feet(self):
        result = evaluate_l(make_conditions(('Bilateral loss of use of feet', 100)), None, RATES)
        self.assertTrue(result.eligible)
        self.assertEqual(result.qualifying_pathway, 'bilateral_feet')
        self.assertEqual(result.monthly_amount, L_RATE)

    def test_hand_and_foot(self):
        conditions = make_conditions(('Amputation, right hand', 70), ('Loss of use of left foot', 40))
        result = evaluate_l(conditions, None, RATES)
        self.assertEqual(result.qualifying_pathway, 'hand_and_foot')

    def test_factual_aid_and_attendance(self):
        adl = score_adl(make_logs('adl-dressing', 'adl-bathing', 'adl-feeding'), RATES)
        result = evaluate_l([], adl, RATES)
        self.assertTrue(result.eligible)
        self.assertEqual(result.qualifying_pathway, 'factual_aa')
        self.assertFalse(result.half_step_eligible)

    def test_half_step_with_five_factors(self):
        adl = score_adl(make_logs(
            'adl-dressing', 'adl-bathing', 'adl-feeding', 'adl-toileting', 'adl-walking',
        ), RATES)
        result = evaluate_l([], adl, RATES)
        self.assertTrue(result.half_step_eligible)
        self.assertEqual(result.half_step_amount, 5240.83)

    def test_not_eligible(self):
        result = evaluate_l(make_conditions(('PTSD', 70)), None, RATES)
        self.assertFalse(result.eligible)
        self.assertEqual(result.monthly_amount, 0)


class TestEvaluateHigherLevels(SimpleTestCase):

    def _evaluate(self, conditions, slugs=()):
        adl = score_adl(make_logs(*slugs), RATES)
        smc_l = evaluate_l(conditions, adl, RATES)
        return evaluate_higher_levels(conditions, adl, smc_l, RATES)

    def test_none(self):
        result = self._evaluate(make_conditions(('PTSD', 100)))
        self.assertIsNone(result.highest_level)
        self.assertFalse(any(f.eligible for f in result.levels.values()))

    def test_blindness_and_deafness_is_m(self):
        result = self._evaluate(make_conditions(('Bilateral blindness', 100), ('Bilateral deafness', 100)))
        self.assertEqual(result.highest_level, 'M')
        self.assertEqual(result.levels['M'].monthly_amount, 5505.87)

    def test_both_arms_above_elbow_is_n(self):
        result = self._evaluate(make_conditions(
            ('Amputation, right arm above elbow', 90),
            ('Amputation, left arm above elbow', 90),
        ))
        self.assertEqual(result.highest_level, 'N')

    def test_shoulder_level_arm_loss(self):
        conditions = make_conditions(
            ('Amputation, right arm at shoulder', 90),
            ('Amputation, left arm above elbow', 90),
        )
        self.assertEqual(len(conditions_of_type(conditions, 'arm_above_elbow')), 2)
        self.assertFalse(self._evaluate(conditions).levels['N'].eligible)

    def test_quadriplegia_is_o(self):
        result = self._evaluate(make_conditions(('Quadriplegia', 100)))
        self.assertEqual(result.highest_level, 'O')

    def test_als_word_match(self):
        self.assertEqual(self._evaluate(make_conditions(('ALS', 100))).highest_level, 'O')
        self.assertIsNone(self._evaluate(make_conditions(('Vocal cord paralysis, falsetto loss', 30))).highest_level)

    def test_pyramiding_to_o(self):
        """Both hands meets SMC-L and SMC-M, which pyramids to SMC-O."""
        result = self._evaluate(make_conditions(('Loss of use of both hands', 100)))
        self.assertTrue(result.levels['M'].eligible)
        self.assertEqual(result.highest_level, 'O')

    def test_o_with_aid_and_attendance_is_r1_then_r2(self):
        conditions = make_conditions(('Quadriplegia', 100))
        r1 = self._evaluate(conditions, ('adl-dressing', 'adl-bathing', 'adl-feeding'))
        self.assertEqual(r1.highest_level, 'R1')
        r2 = self._evaluate(conditions, ('adl-dressing', 'adl-bathing', 'adl-feeding', 'adl-nursing-level'))
        self.assertEqual(r2.highest_level, 'R2')
        self.assertEqual(r2.highest_amount, 11438.14)

    def test_tbi_100_with_aid_and_attendance_is_t(self):
        result = self._evaluate(
            make_conditions(('Traumatic brain injury', 100, '8045')),
            ('adl-dressing', 'adl-memory', 'adl-safety'),
        )
        self.assertTrue(result.levels['T'].eligible)
        self.assertEqual(result.highest_level, 'T')


# =============================================================================
# TIER AGGREGATION
# =============================================================================

class TestAggregate(SimpleTestCase):

    K_ONE = SMCKResult(eligible=True, total_awards=1, capped_awards=1, monthly_amount=K_RATE, rate=K_RATE)

    def _adl(self, level):
        return ADLResult(has_data=True, potential_level=level)

    def _higher(self, level):
        result = HigherLevelsResult()
        result.levels[level] = LevelFinding(eligible=True)
        return result

    def test_absent_inputs(self):
        result = aggregate(None, None, None, RATES)
        self.assertEqual(result.total_monthly, 0)
        self.assertIsNone(result.base_level)
        self.assertFalse(any(result.badges.values()))

    def test_k_only(self):
        result = aggregate(self.K_ONE, SMCSResult(), None, RATES)
        self.assertEqual(result.total_monthly, K_RATE)
        self.assertIsNone(result.base_level)
        self.assertEqual(result.highest_level, 'K')

    def test_k_added_on_s(self):
        result = aggregate(self.K_ONE, SMCSResult(eligible=True), None, RATES)
        self.assertEqual(result.base_level, 'S')
        self.assertTrue(result.k_added)
        self.assertAlmostEqual(result.total_monthly, S_RATE + K_RATE, places=2)

    def test_k_added_on_adl_l(self):
        result = aggregate(self.K_ONE, None, self._adl('L'), RATES)
        self.assertAlmostEqual(result.total_monthly, L_RATE + K_RATE, places=2)

    def test_k_not_added_on_r(self):
        result = aggregate(self.K_ONE, SMCSResult(eligible=True), self._adl('R'), RATES)
        self.assertEqual(result.base_level, 'R1')
        self.assertFalse(result.k_added)
        self.assertEqual(result.total_monthly, R1_RATE)
        self.assertTrue(result.badges['K'])
        self.assertTrue(result.badges['S'])

    def test_tiers_do_not_stack(self):
        result = aggregate(None, SMCSResult(eligible=True), self._adl('L'), RATES)
        self.assertEqual(result.base_level, 'L')
        self.assertEqual(result.total_monthly, L_RATE)

    def test_adl_s_counts_as_s(self):
        result = aggregate(None, None, self._adl('S'), RATES)
        self.assertTrue(result.badges['S'])
        self.assertEqual(result.total_monthly, S_RATE)

    def test_smc_l_result(self):
        result = aggregate(None, None, None, RATES, smc_l=SMCLResult(eligible=True))
        self.assertEqual(result.base_level, 'L')

    def test_higher_level_priority(self):
        for level, additive in [('M', True), ('N', True), ('O', False), ('T', False), ('R2', False)]:
            with self.subTest(level=level):
                result = aggregate(self.K_ONE, None, self._adl('L'), RATES, higher=self._higher(level))
                self.assertEqual(result.base_level, level)
                self.assertEqual(result.k_added, additive)
                expected = RATES.amount(level) + (K_RATE if additive else 0)
                self.assertAlmostEqual(result.total_monthly, expected, places=2)


# =============================================================================
# ELIGIBILITY SERVICE
# =============================================================================

class TestEligibilityService(SimpleTestCase):

    def test_no_data(self):
        summary = evaluate([], [])
        self.assertEqual(summary.combined_rating, 0)
        self.assertEqual(summary.total_monthly, 0)
        self.assertFalse(summary.any_eligible)
        self.assertFalse(summary.adl.has_data)
        self.assertEqual(summary.smc_s.reason, 'no condition at 100%')

    def test_full_profile(self):
        conditions = [
            {'id': '1', 'conditionName': 'PTSD', 'currentRating': 100, 'effectiveDate': '2020-01-01'},
            {'id': '2', 'conditionName': 'Lumbar strain', 'currentRating': 40},
            {'id': '3', 'conditionName': 'Knee instability', 'currentRating': 30},
            {'id': '4', 'conditionName': 'Removal of testis', 'currentRating': 0},
        ]
        logs = [{'id': 'a', 'symptomId': 'adl-dressing'}, {'id': 'b', 'symptomId': 'headache'}]
        summary = evaluate(conditions, logs)

        self.assertEqual(summary.combined_rating, 100)
        self.assertTrue(summary.smc_k.eligible)
        self.assertTrue(summary.smc_s.eligible)
        self.assertEqual(summary.adl.total_logs, 1)
        self.assertEqual(summary.tiers.base_level, 'S')
        self.assertAlmostEqual(summary.total_monthly, S_RATE + K_RATE, places=2)

        data = summary.to_dict()
        self.assertEqual(data['rate_year'], 2026)
        self.assertTrue(data['badges']['K'])
        self.assertEqual(data['smc_s']['condition100']['id'], '1')
        json.dumps(data)

    def test_rate_table_parameter(self):
        summary = evaluate([{'conditionName': 'Removal of testis'}], [], rate_table=get_rate_table(2025))
        self.assertEqual(summary.rate_year, 2025)
        self.assertEqual(summary.total_monthly, 136.06)

    def test_signals(self):
        summary = evaluate([], [], signals=[{'source': 'aphonia', 'smcEligible': True}])
        self.assertTrue(summary.badges['K'])

    def test_inputs_not_mutated(self):
        conditions = [{'conditionName': 'PTSD', 'currentRating': '100'}, {'conditionName': 'Back', 'currentRating': 60}]
        logs = [{'symptom': 'adl-dressing'}]
        before = (copy.deepcopy(conditions), copy.deepcopy(logs))
        evaluate(conditions, logs)
        self.assertEqual((conditions, logs), before)

    def test_malformed_records_skipped(self):
        with self.assertLogs('eligibility.schemas', level='WARNING'):
            summary = evaluate(
                [{'conditionName': 'PTSD', 'currentRating': 'seventy'}, 'garbage', {'conditionName': 'Knee', 'currentRating': 30}],
                [None, {'symptomId': 42}],
            )
        self.assertEqual(summary.combined_rating, 30)

    def test_deterministic(self):
        conditions = [{'conditionName': 'Quadriplegia', 'currentRating': 100}]
        logs = [{'symptomId': 'adl-dressing'}, {'symptomId': 'adl-feeding'}, {'symptomId': 'adl-bathing'}]
        self.assertEqual(evaluate(conditions, logs).to_dict(), evaluate(conditions, logs).to_dict())

    def test_evaluator_failure_degrades_to_not_eligible(self):
        conditions = [{'conditionName': 'PTSD', 'currentRating': 100}, {'conditionName': 'Back', 'currentRating': 60}]
        with patch('eligibility.services.eligibility_service.evaluate_s', side_effect=RuntimeError('boom')):
            with self.assertLogs('eligibility.services.eligibility_service', level='ERROR'):
                summary = evaluate(conditions, [])
        self.assertFalse(summary.smc_s.eligible)
        self.assertEqual(summary.combined_rating, 100)
        self.assertEqual(summary.total_monthly, 0)

    def test_info_log_has_no_condition_names(self):
        with self.assertLogs('eligibility.services.eligibility_service', level='INFO') as logs:
            evaluate([{'conditionName': 'Very Private Diagnosis', 'currentRating': 50}], [])
        output = '\n'.join(logs.output)
        self.assertIn('conditions=1', output)
        self.assertNotIn('Very Private Diagnosis', output)


class TestFilterRecentLogs(SimpleTestCase):

    NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_window(self):
        logs = [
            {'id': 'recent', 'symptomId': 'adl-dressing', 'timestamp': '2025-05-20T10:00:00Z'},
            {'id': 'old', 'symptomId': 'adl-dressing', 'timestamp': '2025-01-01T10:00:00Z'},
            {'id': 'naive', 'symptomId': 'adl-feeding', 'timestamp': '2025-05-30T08:00:00'},
            {'id': 'undated', 'symptomId': 'adl-bathing'},
        ]
        recent = filter_recent_logs(logs, days=90, now=self.NOW)
        self.assertEqual([entry.id for entry in recent], ['recent', 'naive'])

    @override_settings(ADL_RECENT_WINDOW_DAYS=7)
    def test_configured_default_window(self):
        logs = [{'id': 'x', 'symptomId': 'adl-dressing', 'timestamp': '2025-05-20T10:00:00Z'}]
        self.assertEqual(filter_recent_logs(logs, now=self.NOW), [])

    def test_window_beyond_date_range_keeps_dated_logs(self):
        logs = [
            {'id': 'old', 'symptomId': 'adl-dressing', 'timestamp': '1900-01-01T00:00:00Z'},
            {'id': 'undated', 'symptomId': 'adl-bathing'},
        ]
        for days in [10 ** 6, 10 ** 10]:
            with self.subTest(days=days):
                recent = filter_recent_logs(logs, days=days, now=self.NOW)
                self.assertEqual([entry.id for entry in recent], ['old'])


# =============================================================================
# SMC_REPORT COMMAND
# =============================================================================

class TestSMCReportCommand(SimpleTestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, data, name='profile.json'):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, 'w') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)
        return path

    def test_text_report(self):
        path = self._write({
            'serviceConnectedConditions': [
                {'conditionName': 'PTSD', 'currentRating': 100},
                {'conditionName': 'Back', 'currentRating': 60},
            ],
            'symptomLogs': [],
        })
        out = StringIO()
        call_command('smc_report', path, stdout=out)
        output = out.getvalue()
        self.assertIn('Combined rating: 100%', output)
        self.assertIn('SMC-S', output)
        self.assertIn('$4,108.37', output)

    def test_json_report_with_rate_year(self):
        path = self._write({'conditions': [{'conditionName': 'Removal of testis'}], 'logs': []})
        out = StringIO()
        call_command('smc_report', path, '--json', '--rate-year', '2024', stdout=out)
        data = json.loads(out.getvalue())
        self.assertEqual(data['rate_year'], 2024)
        self.assertEqual(data['total_monthly'], 131.64)

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('smc_report', os.path.join(self.tmpdir.name, 'missing.json'), stdout=StringIO())

    def test_invalid_json(self):
        path = self._write('{not json')
        with self.assertRaises(CommandError):
            call_command('smc_report', path, stdout=StringIO())

    def test_non_object(self):
        path = self._write([1, 2, 3])
        with self.assertRaises(CommandError):
            call_command('smc_report', path, stdout=StringIO())

    def test_non_utf8_file(self):
        path = os.path.join(self.tmpdir.name, 'latin1.json')
        with open(path, 'wb') as f:
            f.write('{"conditions": [{"conditionName": "Genou blessé"}]}'.encode('latin-1'))
        with self.assertRaises(CommandError):
            call_command('smc_report', path, stdout=StringIO())

    def test_utf8_names(self):
        path = os.path.join(self.tmpdir.name, 'utf8.json')
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({'conditions': [{'conditionName': 'Genou blessé', 'currentRating': 30}]}, f, ensure_ascii=False)
        out = StringIO()
        call_command('smc_report', path, stdout=out)
        self.assertIn('Combined rating: 30%', out.getvalue())

    def test_window_days_out_of_range(self):
        path = self._write({'conditions': [], 'logs': []})
        for days in ['0', '1000000']:
            with self.subTest(days=days):
                with self.assertRaises(CommandError):
                    call_command('smc_report', path, '--window-days', days, stdout=StringIO())

    def test_profile_window_days_out_of_range(self):
        path = self._write({'conditions': [], 'logs': [], 'window_days': 1000000})
        with self.assertRaises(CommandError):
            call_command('smc_report', path, stdout=StringIO())
