from unittest.mock import AsyncMock, MagicMock

import pytest

from hireflow.db.pool import DatabasePoolManager


def _ready_manager(row, stats=None) -> DatabasePoolManager:
    cursor = MagicMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=row)
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = cursor

    pool = MagicMock()
    pool.connection.return_value.__aenter__.return_value = conn
    pool.get_stats.return_value = stats or {"pool_size": 4, "pool_available": 3}

    manager = DatabasePoolManager(MagicMock(DATABASE_URL="postgresql://localhost/hireflow"))
    manager.pool = pool
    manager._initialized = True
    return manager


async def test_health_check_reports_pool_stats():
    health = await _ready_manager({"ok": 1}).health_check()

    assert health["healthy"] is True
    assert health["pool_stats"]["pool_utilization_percent"] == 25.0


async def test_health_check_unhealthy_when_pool_saturated():
    health = await _ready_manager({"ok": 1}, {"pool_size": 10, "pool_available": 0}).health_check()

    assert health["healthy"] is False


async def test_health_check_unhealthy_on_bad_result():
    health = await _ready_manager({"ok": 0}).health_check()

    assert health["healthy"] is False
    assert "Connection test failed" in health["error"]


async def test_uninitialized_pool():
    manager = DatabasePoolManager(MagicMock())

    assert (await manager.health_check())["healthy"] is False
    with pytest.raises(RuntimeError):
        async with manager.connection():
            pass


async def test_closed_pool_refuses_connections():
    manager = _ready_manager({"ok": 1})
    manager.pool.close = AsyncMock()

    await manager.close()

    assert manager.is_initialized is False
    manager.pool.close.assert_awaited_once()
    with pytest.raises(RuntimeError):
        async with manager.connection():
            pass
