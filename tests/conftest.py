import sys
import os
from pathlib import Path

import pytest

# Ensure src/ is on sys.path so 'l2a_ondemand' is importable without installing
SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC not in sys.path:
    sys.path.insert(0, SRC)

FIXTURES = Path(__file__).parent / 'fixtures'


@pytest.fixture
def load_fixture():
    """Read a response document from tests/fixtures."""
    def _load(name: str) -> bytes:
        return (FIXTURES / name).read_bytes()
    return _load
