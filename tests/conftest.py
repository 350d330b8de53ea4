"""
Shared pytest fixtures for the download gate tests.
"""

from decimal import Decimal

import pytest

from core.throttle import reset_download_limiter
from products.models import Product

FREE_STL = b"solid flexi\nfacet normal 0 0 1\nendsolid flexi\n"
PREMIUM_ZIP = b"PK\x03\x04premium-helmet-bundle"


class FakeClock:
    """Monotonic + wall clock pair that only moves when told to."""

    def __init__(self, start: float = 1_000.0, wall: float = 1_700_000_000.0):
        self.now = start
        self.wall_offset = wall - start

    def monotonic(self) -> float:
        return self.now

    def wall(self) -> float:
        return self.now + self.wall_offset

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_limiter():
    """Every test starts with empty rate-limit buckets."""
    reset_download_limiter()
    yield
    reset_download_limiter()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage_root(tmp_path, settings):
    root = tmp_path / "protected"
    (root / "models" / "free").mkdir(parents=True)
    (root / "models" / "premium").mkdir(parents=True)
    (root / "models" / "free" / "flexi-rex-v1.stl").write_bytes(FREE_STL)
    (root / "models" / "premium" / "cyberpunk-helmet-v2.zip").write_bytes(PREMIUM_ZIP)
    (root / "models" / "free" / "notes.txt").write_text("not a model")
    settings.DOWNLOAD_STORAGE_ROOT = root
    return root


@pytest.fixture
def buyer(django_user_model):
    return django_user_model.objects.create_user(username="buyer", email="buyer@example.com", password="pw-buyer-123")


@pytest.fixture
def other_user(django_user_model):
    return django_user_model.objects.create_user(username="browser", email="browser@example.com", password="pw-other-123")


@pytest.fixture
def free_product(db, storage_root) -> Product:
    return Product.objects.create(
        title="Flexi Rex",
        is_free=True,
        file_path="/models/free/flexi-rex-v1.stl",
    )


@pytest.fixture
def paid_product(db, storage_root) -> Product:
    return Product.objects.create(
        title="Cyberpunk Helmet",
        is_free=False,
        price=Decimal("19.99"),
        file_path="/models/premium/cyberpunk-helmet-v2.zip",
    )
