"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers (Top-Down TDD):
    - component/  : Component tests (in-memory repository, mock event bus)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Select deployment/environments/test.env before core.config is first imported
os.environ.setdefault("ENV", "testing")
