from datetime import datetime
from pathlib import Path

import pytest


@pytest.fixture
def shop_sources():
    """Java sources of a small shop domain (entities with a shared base class)."""
    return Path(__file__).parent / "fixtures" / "shop"


@pytest.fixture
def generated_at():
    """Fixed generation time so rendered output is comparable."""
    return datetime(2024, 1, 2, 3, 4, 5)
