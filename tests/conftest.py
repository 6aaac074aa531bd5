"""Shared fixtures for cashplan tests."""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from cashplan.db.job_store import InMemoryJobStore, get_job_store
from cashplan.main import app
from cashplan.services.gemini_chat import ChatService, get_chat_service


FIXED_TODAY = date(2024, 1, 1)


@pytest.fixture
def today():
    return FIXED_TODAY


@pytest.fixture
def weekly_records():
    """Five weekly rows of a cash-positive business (cash 150k -> 178k)."""
    return [
        {"date": "2024-01-07", "cash": 150000.0, "income": 20000.0, "expenses": 13000.0},
        {"date": "2024-01-14", "cash": 157000.0, "income": 22000.0, "expenses": 15000.0},
        {"date": "2024-01-21", "cash": 164000.0, "income": 24000.0, "expenses": 17000.0},
        {"date": "2024-01-28", "cash": 171000.0, "income": 25000.0, "expenses": 18000.0},
        {"date": "2024-02-04", "cash": 178000.0, "income": 26000.0, "expenses": 19000.0},
    ]


@pytest.fixture
def burning_records():
    """Six months of a business burning 10k/month with 10k left."""
    cash = [60000, 50000, 40000, 30000, 20000, 10000]
    return [
        {"month": f"2024-0{i + 1}", "cash": c, "income": 10000, "expenses": 20000}
        for i, c in enumerate(cash)
    ]


@pytest.fixture
def sample_csv():
    return (
        "Date,Cash,Income,Expenses\n"
        "2024-01-07,\"$150,000\",20000,13000\n"
        "2024-01-14,\"$157,000\",22000,15000\n"
        "2024-01-21,\"$164,000\",24000,17000\n"
        "2024-01-28,\"$171,000\",25000,18000\n"
        "2024-02-04,\"$178,000\",26000,19000\n"
    ).encode("utf-8")


@pytest.fixture
def store():
    return InMemoryJobStore()


class FakeGenerator:
    """Stands in for the Gemini call; records prompts."""

    def __init__(self, answer="Keep an eye on your runway."):
        self.answer = answer
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def chat_service(fake_generator):
    return ChatService(generate=fake_generator, history_limit=10)


@pytest.fixture
def client(store, chat_service):
    app.dependency_overrides[get_job_store] = lambda: store
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
