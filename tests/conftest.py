"""Shared fixtures: a small set of cards and purchases, and clean settings."""

from decimal import Decimal

import pytest

from creditflow.config import get_settings
from creditflow.models.finance import Card, Purchase


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Tests never pick up a real Gemini key or Sheets config from the environment."""
    for name in (
        "GEMINI_API_KEY",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "DISPLAY_LOCALE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def nubank():
    return Card(id="c1", name="Nubank", color="#8b5cf6", due_day=10)


@pytest.fixture
def inter():
    return Card(id="c2", name="Inter", color="#f97316", due_day=5)


@pytest.fixture
def cards(nubank, inter):
    return [nubank, inter]


@pytest.fixture
def phone():
    """300.00 in 3x on c1, starting Jan 2024."""
    return Purchase(
        id="p1",
        card_id="c1",
        title="Phone",
        total_amount=Decimal("300.00"),
        installments=3,
        start_month="2024-01",
    )


@pytest.fixture
def sofa():
    """200.00 in 2x on c2, starting Feb 2024."""
    return Purchase(
        id="p2",
        card_id="c2",
        title="Sofa",
        total_amount=Decimal("200.00"),
        installments=2,
        start_month="2024-02",
    )
