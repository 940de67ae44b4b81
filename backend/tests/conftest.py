import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


class FixedAdvanceMeasurer:
    """Every character is `advance` pixels wide, whatever the font."""

    def __init__(self, advance: float = 10):
        self.advance = advance

    def measure_text(self, text, font):
        return len(text) * self.advance


@pytest.fixture
def measurer():
    return FixedAdvanceMeasurer()
