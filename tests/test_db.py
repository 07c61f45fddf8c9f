import pytest

from hotspot_billing.core.db import _ensure_async_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgres://u:p@db/hotspot", "postgresql+asyncpg://u:p@db/hotspot"),
        ("postgresql://u:p@db/hotspot", "postgresql+asyncpg://u:p@db/hotspot"),
        ("postgresql+psycopg://u:p@db/hotspot", "postgresql+asyncpg://u:p@db/hotspot"),
        ("postgresql+psycopg2://u:p@db/hotspot", "postgresql+asyncpg://u:p@db/hotspot"),
        ("postgresql+asyncpg://u:p@db/hotspot", "postgresql+asyncpg://u:p@db/hotspot"),
        ("sqlite:///./hotspot.db", "sqlite+aiosqlite:///./hotspot.db"),
        ("sqlite+aiosqlite://", "sqlite+aiosqlite://"),
    ],
)
def test_ensure_async_url(url, expected):
    assert _ensure_async_url(url) == expected
