"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest
import pytest_asyncio

# Insert local src directory at the beginning of sys.path
# This ensures that the local relnotes package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of relnotes modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("relnotes"):
        del sys.modules[module_name]

from fakes import FakeProvider, FakeSource  # noqa: E402

from relnotes.index.backend import MemoryBackend  # noqa: E402
from relnotes.index.store import LocalIndex  # noqa: E402


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def make_index(backend: MemoryBackend) -> Callable[[], LocalIndex]:
    """Factory for stores sharing one in-memory backend."""

    def factory() -> LocalIndex:
        return LocalIndex(backend)

    return factory


@pytest_asyncio.fixture
async def index(make_index: Callable[[], LocalIndex]) -> LocalIndex:
    """A created, empty store."""
    store = make_index()
    await store.create_index()
    return store


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
