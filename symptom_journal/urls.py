"""
URL configuration for symptom_journal project.
"""

from django.http import JsonResponse
from django.urls import path, include


def health_check(request):
    """Liveness check for load balancers and monitoring."""
    return JsonResponse({'status': 'healthy'})


urlpatterns = [
    path('health/', health_check, name='health_check'),

    # REST API
    path('api/v1/eligibility/', include('eligibility.urls')),
]
