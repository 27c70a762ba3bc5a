"""
Unit Test Fixtures for Campaign Service

Pure functions and models only; nothing here touches a database or NATS.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.campaign.data_contract import CampaignTestDataFactory


@pytest.fixture
def factory():
    """Provide the campaign test data factory"""
    return CampaignTestDataFactory
