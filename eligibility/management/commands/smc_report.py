"""
Management command to print a combined rating and SMC estimate for a
journal export.

Usage:
    python manage.py smc_report profile.json
    python manage.py smc_report profile.json --rate-year 2025
    python manage.py smc_report profile.json --window-days 90
    python manage.py smc_report profile.json --json
"""

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from pydantic import ValidationError

from eligibility.schemas import MAX_WINDOW_DAYS, EvaluationRequest
from eligibility.services import evaluate, filter_recent_logs
from eligibility.smc_rates import get_rate_table


class Command(BaseCommand):
    help = 'Evaluate combined rating and SMC eligibility for a journal export file'

    def add_arguments(self, parser):
        parser.add_argument(
            'profile',
            help='JSON export with "serviceConnectedConditions" and "symptomLogs" (or "conditions" and "logs")',
        )
        parser.add_argument(
            '--rate-year',
            type=int,
            default=None,
            help='SMC rate year (defaults to settings.SMC_RATE_YEAR)',
        )
        parser.add_argument(
            '--window-days',
            type=int,
            default=None,
            help='Only use symptom logs from the last N days',
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the full summary as JSON',
        )

    def handle(self, *args, **options):
        window_option = options['window_days']
        if window_option is not None and not 1 <= window_option <= MAX_WINDOW_DAYS:
            raise CommandError(f'--window-days must be between 1 and {MAX_WINDOW_DAYS}')

        path = Path(options['profile'])
        if not path.exists():
            raise CommandError(f'File not found: {path}')

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except UnicodeDecodeError as e:
            raise CommandError(f'{path} is not UTF-8 encoded: {e}')
        except json.JSONDecodeError as e:
            raise CommandError(f'Invalid JSON in {path}: {e}')

        if not isinstance(data, dict):
            raise CommandError('Profile file must contain a JSON object')

        try:
            payload = EvaluationRequest.model_validate(data)
        except ValidationError as e:
            raise CommandError(f'Invalid profile: {e.error_count()} validation error(s)')

        logs = payload.logs
        window_days = window_option or payload.window_days
        if window_days:
            logs = filter_recent_logs(logs, days=window_days)

        rate_year = options['rate_year'] or payload.rate_year
        summary = evaluate(
            payload.conditions,
            logs,
            rate_table=get_rate_table(rate_year),
            signals=payload.signals,
        )

        if options['json']:
            self.stdout.write(json.dumps(summary.to_dict(), indent=2, default=str))
            return

        self._print_summary(summary)

    def _print_summary(self, summary):
        self.stdout.write(self.style.HTTP_INFO(f'\n=== SMC Estimate ({summary.rate_year} rates) ==='))
        self.stdout.write(f'Combined rating: {summary.combined_rating}%')

        k = summary.smc_k
        if k.eligible:
            self.stdout.write(self.style.SUCCESS(
                f'SMC-K: {k.capped_awards} award(s) = ${k.monthly_amount:,.2f}/month'
            ))
            for match in k.eligible_categories:
                flag = '' if match.auto_grant else ' (needs medical nexus)'
                self.stdout.write(f'  - {match.category_name}{flag}')
            if k.total_awards > k.capped_awards:
                self.stdout.write(self.style.WARNING(
                    f'  {k.total_awards} qualifying losses; capped at {k.max_awards} awards'
                ))
        else:
            self.stdout.write('SMC-K: not eligible')

        s = summary.smc_s
        label = self.style.SUCCESS('eligible') if s.eligible else 'not eligible'
        self.stdout.write(f'SMC-S: {label} ({s.reason})')

        adl = summary.adl
        if adl.has_data:
            level = adl.potential_level or 'none'
            self.stdout.write(f'ADL: {adl.message}; potential tier {level}')
        else:
            self.stdout.write(self.style.WARNING(f'ADL: {adl.message}'))

        higher = summary.higher_levels
        if higher.highest_level:
            self.stdout.write(f'Highest schedular level: SMC-{higher.highest_level}')

        badges = [level for level, eligible in summary.badges.items() if eligible]
        self.stdout.write(f"Eligible levels: {', '.join(badges) if badges else 'none'}")
        self.stdout.write(self.style.SUCCESS(
            f'Estimated total SMC: ${summary.total_monthly:,.2f}/month'
        ))
