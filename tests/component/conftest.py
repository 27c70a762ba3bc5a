"""
Component Test Layer Configuration (Layer 3)

Structure:
    tests/component/
    ├── campaign/    Campaign services against the in-memory repository
    └── mocks/       Mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/campaign -v
"""
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

# Load test environment variables
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent
test_env_file = project_root / "deployment" / "environments" / "test.env"
if test_env_file.exists():
    load_dotenv(test_env_file, override=True)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


# =============================================================================
# Config Mocks
# =============================================================================

@pytest.fixture
def mock_config() -> MagicMock:
    """Mock ConfigManager"""
    config = MagicMock()
    config.discover_service = MagicMock(return_value=("localhost", 4222))
    config.get = MagicMock(return_value=None)
    return config
