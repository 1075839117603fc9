"""
Pytest configuration and fixtures for all tests.
This file makes fixtures available to all tests in backend/.
"""

import pytest
from django.contrib.auth.models import User
from django.core.cache import cache

from apps.candidates.models import Candidate
from apps.qvote.live_sync import hub
from apps.qvote.models import Code
from apps.qvote.services import get_config

# Ensure pytest-django is loaded
pytest_plugins = ["pytest_django"]


@pytest.fixture(autouse=True)
def clear_live_state():
    """Drop cached viewer hints and in-process subscriptions between tests."""
    cache.clear()
    yield
    hub.clear()
    cache.clear()


@pytest.fixture
def user(db):
    """Create a test user (the code owner)."""
    return User.objects.create_user(
        username="testuser",
        email="test@example.com",
        password="testpass123",
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        username="otheruser",
        email="other@example.com",
        password="testpass123",
    )


@pytest.fixture
def code(db, user):
    """Create a test code."""
    return Code.objects.create(owner=user, short_id="evt2026", title="Talent Night")


@pytest.fixture
def qvote_config(code):
    """Q.Vote config for the test code, open for voting."""
    config = get_config(code)
    config.current_phase = "voting"
    config.max_selections_per_voter = 2
    config.save()
    return config


@pytest.fixture
def candidates(code, qvote_config):
    """Three approved, visible candidates."""
    rows = [
        Candidate.objects.create(code=code, name="Alice", is_approved=True, display_order=0),
        Candidate.objects.create(code=code, name="Bob", is_approved=True, display_order=1),
        Candidate.objects.create(code=code, name="Carol", is_approved=True, display_order=2),
    ]
    qvote_config.total_candidates = 3
    qvote_config.approved_candidates = 3
    qvote_config.save(update_fields=["total_candidates", "approved_candidates"])
    return rows


@pytest.fixture
def categorized_config(qvote_config, candidates):
    """Two voting categories; Alice and Bob sing, Bob and Carol dance."""
    qvote_config.categories = [
        {"id": "singing", "name": "Singing", "is_active": True},
        {"id": "dancing", "name": "Dancing", "is_active": True},
    ]
    qvote_config.save(update_fields=["categories"])
    alice, bob, carol = candidates
    alice.category_id = "singing"
    alice.save(update_fields=["category_id"])
    bob.category_ids = ["singing", "dancing"]
    bob.save(update_fields=["category_ids"])
    carol.category_id = "dancing"
    carol.save(update_fields=["category_id"])
    return qvote_config


@pytest.fixture
def verified_config(qvote_config):
    """Config with phone verification enabled."""
    qvote_config.verification = {
        "enabled": True,
        "method": "whatsapp",
        "max_votes_per_phone": 1,
        "max_attempts": 3,
        "block_duration_minutes": 30,
    }
    qvote_config.save(update_fields=["verification"])
    return qvote_config


@pytest.fixture
def api_client():
    """Create a DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    """Create an authenticated API client (as the code owner)."""
    api_client.force_authenticate(user=user)
    return api_client
