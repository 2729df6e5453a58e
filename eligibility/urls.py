"""
Eligibility API URL Configuration

Mounted under /api/v1/eligibility/
"""

from django.urls import path

from . import views

app_name = 'eligibility'

urlpatterns = [
    path('evaluate/', views.evaluate, name='evaluate'),
    path('rates/', views.rates, name='rates'),
]
