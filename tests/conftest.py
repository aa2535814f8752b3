"""
pytest configuration and fixtures for the C struct schema tests.

Provides reusable fixtures for:
- Sample headers (the packed test_t/testa_t pair, the P/L line example)
- Prebuilt type graphs
- Hypothesis property-based testing configuration
"""

import os
import sys
from pathlib import Path

import pytest

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from schema_builder import build_type_graph

# Configure Hypothesis profiles
try:
    from hypothesis import settings, Verbosity, Phase

    # Default profile: balanced speed and coverage
    settings.register_profile(
        "default",
        max_examples=100,
        deadline=None,
    )

    # CI profile: more thorough testing
    settings.register_profile(
        "ci",
        max_examples=500,
        deadline=None,
        suppress_health_check=[],
        phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    )

    # Dev profile: fast iteration
    settings.register_profile(
        "dev",
        max_examples=10,
        deadline=None,
    )

    # Debug profile: verbose output
    settings.register_profile(
        "debug",
        max_examples=10,
        verbosity=Verbosity.verbose,
        deadline=None,
    )

    # Load profile from environment
    profile = os.environ.get("HYPOTHESIS_PROFILE", "default")
    settings.load_profile(profile)

except ImportError:
    pass  # Hypothesis not installed


SAMPLE_HEADER = """\
#include <stdio.h>
#include <stdlib.h>
#include <stdint.h>

#define MAX 5

#pragma pack(push, 1)

struct testa_t
{
    uint16_t field5;
    uint8_t mat[MAX][MAX];
};

struct test_t
{
    uint8_t field1;
    uint16_t field2;
    uint32_t field3;
    uint64_t field4;
    uint8_t arr[MAX];
    struct testa_t field6;
} test_instance;

#pragma pack(pop)
"""

LINE_HEADER = """\
struct P { int32_t x; int32_t y; };
struct L { struct P a; struct P b; };
"""


@pytest.fixture
def sample_header():
    """The packed test_t/testa_t header (47-byte test_t)."""
    return SAMPLE_HEADER


@pytest.fixture
def sample_graph():
    return build_type_graph(SAMPLE_HEADER)


@pytest.fixture
def line_header():
    return LINE_HEADER


@pytest.fixture
def line_graph():
    return build_type_graph(LINE_HEADER)


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
