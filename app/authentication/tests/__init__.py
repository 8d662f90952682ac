"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User, Profile, EmailVerificationToken model tests
- test_services.py: AuthService tests
- test_views.py: API endpoint tests
- test_adapters.py: OAuth adapter tests
- test_tasks.py: Celery task tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
