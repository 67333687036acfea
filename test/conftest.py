from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import load_dotenv

from controlplane_store.core.config import StoreDefaults

# Load dotenv files early so test fixtures can read settings via os.getenv
TEST_ROOT = Path(__file__).resolve().parent
# Load test/.env first, then fallback to test/.env.example for defaults
load_dotenv(TEST_ROOT / ".env", override=False)
load_dotenv(TEST_ROOT / ".env.example", override=False)

# Import test settings after dotenv is loaded
from test.settings import test_settings  # noqa: E402


@pytest.fixture(scope="session")
def test_config():
    """Fixture providing test configuration from Pydantic settings model.

    Returns:
        TestSettings: Test configuration with all environment variables loaded
    """
    return test_settings


@pytest.fixture(scope="session")
def store_defaults() -> StoreDefaults:
    """Seed identities used by every repository under test."""
    return StoreDefaults()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a fresh file-backed SQLite database for one test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'store.sqlite'}"
