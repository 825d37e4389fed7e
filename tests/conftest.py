# tests/conftest.py
"""Shared fixtures: one backend per storage kind, plus a gateway over it."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from sqlalchemy.pool import StaticPool

from platelink.database import build_engine, build_session_factory, create_tables
from platelink.domain import ContactMethods
from platelink.services.backend import build_memory_backend, build_sql_backend
from platelink.services.search_gateway import SearchGateway

REFERRAL_REWARD = 5


def make_sql_backend(signup_bonus=0):
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_tables(engine)
    return build_sql_backend(build_session_factory(engine), signup_bonus=signup_bonus,
                             referral_reward=REFERRAL_REWARD)


def make_memory_backend(signup_bonus=0):
    return build_memory_backend(signup_bonus=signup_bonus, referral_reward=REFERRAL_REWARD)


@pytest.fixture(params=["memory", "sql"])
def backend(request):
    """Every core test runs against both implementations."""
    if request.param == "memory":
        return make_memory_backend()
    return make_sql_backend()


@pytest.fixture
def memory_backend():
    return make_memory_backend()


@pytest.fixture
def gateway(backend):
    return SearchGateway(backend, contact_cost=1, low_balance_threshold=3)


@pytest.fixture
def make_user(backend):
    def _make(name="Riyaansh Mittal", phone="9876543210", email="riyaansh@example.com", methods=None):
        return backend.users.create_user(name, phone=phone, email=email,
                                         contact_methods=methods or ContactMethods(phone=True))
    return _make
