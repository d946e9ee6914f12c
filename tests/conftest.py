import os
import sys

import pytest


# Ensure the repository root is on sys.path so tests can import local entrypoints
# like apps.mock_engine.app without requiring an editable install.
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repo_root():
    return _REPO_ROOT
