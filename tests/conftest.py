"""
Pytest configuration and shared fixtures for category grouper tests.

This module provides:
- Synthetic item sets with known geometry
- Item builders
- Configuration reset between tests
"""

import os
from typing import List, Sequence

import numpy as np
import pytest

from category_grouper.config.settings_loader import ConfigManager
from category_grouper.schemas.data_models import Item

# Set test environment variables
os.environ["TESTING"] = "true"


# =============================================================================
# Item Builders
# =============================================================================

def make_items(
    positions: Sequence[Sequence[float]],
    names: Sequence[str] = None,
    ids: Sequence[str] = None,
) -> List[Item]:
    """Build items from embedding positions; ids default to "1".."n"."""
    names = names or [f"Item {i + 1}" for i in range(len(positions))]
    ids = ids or [str(i + 1) for i in range(len(positions))]
    return [
        Item(id=item_id, name=name, embedding=list(map(float, position)))
        for item_id, name, position in zip(ids, names, positions)
    ]


@pytest.fixture
def item_factory():
    """Expose make_items as a fixture."""
    return make_items


# =============================================================================
# Test Data
# =============================================================================

@pytest.fixture
def two_blob_items():
    """
    Twelve 2-D items: six near (0, 0) and six near (10, 10).
    """
    np.random.seed(42)
    blob_a = np.random.randn(6, 2) * 0.1
    blob_b = np.random.randn(6, 2) * 0.1 + 10.0
    positions = np.vstack([blob_a, blob_b]).tolist()
    names = [f"Surgery Clinic {i}" for i in range(6)] + [f"Payroll Office {i}" for i in range(6)]
    return make_items(positions, names)


@pytest.fixture
def two_pair_items():
    """
    Four 1-D items at 0, 1, 10 and 11.

    With min_cluster_size=2 the pair {0, 1} survives and {10, 11} is noise.
    """
    return make_items(
        [[0.0], [1.0], [10.0], [11.0]],
        ["Hospital Nurse", "Clinic Aide", "Payroll Clerk", "Salary Analyst"],
    )


@pytest.fixture
def lattice_items():
    """4 x 4 integer grid: many equal distances."""
    positions = [[float(x), float(y)] for x in range(4) for y in range(4)]
    names = [f"Node {x}{y}" for x in range(4) for y in range(4)]
    ids = [f"n{x}{y}" for x in range(4) for y in range(4)]
    return make_items(positions, names, ids)


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config_manager():
    """Drop cached settings so each test loads its own configuration."""
    ConfigManager._settings = None
    yield
    ConfigManager._settings = None


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that override configuration."""
    for name in (
        "CONFIG_PATH",
        "MIN_CLUSTER_SIZE",
        "COLLECTION_NAME",
        "GEMINI_API_KEY",
        "EMBEDDING_MODEL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for component interactions"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take >1 second"
    )
