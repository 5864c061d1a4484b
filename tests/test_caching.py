"""Tests for Redis caching of directory data."""

import json
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.redis_client import CacheManager
from app.services.directory_service import DirectoryService


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    result = cache_manager.get_json("doctor:1")
    assert result is None
    mock_redis.get.assert_called_once_with("doctor:1")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"name": "Dr. Alice Smith", "specialty": null}'
    result = cache_manager.get_json("doctor:1")
    assert result == {"name": "Dr. Alice Smith", "specialty": None}


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    doctor_id = uuid4()

    # Test without TTL
    assert cache_manager.set_json("doctor:1", {"id": doctor_id}) is True
    mock_redis.set.assert_called_once_with("doctor:1", json.dumps({"id": str(doctor_id)}))

    # Test with TTL
    mock_redis.reset_mock()
    assert cache_manager.set_json("doctor:1", {"id": doctor_id}, ttl=300) is True
    mock_redis.setex.assert_called_once()


def test_cache_manager_fails_soft():
    """A Redis outage turns into cache misses, never errors."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = RedisConnectionError("down")
    mock_redis.setex.side_effect = RedisConnectionError("down")
    mock_redis.keys.side_effect = RedisConnectionError("down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("doctor:1") is None
    assert cache_manager.set_json("doctor:1", {}, ttl=60) is False
    assert cache_manager.delete_pattern("doctor:*") == 0


def test_cache_manager_delete_pattern():
    """Test CacheManager delete_pattern method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    mock_redis.keys.return_value = ["doctor:1", "doctor:2", "doctor:list"]
    mock_redis.delete.return_value = 3

    result = cache_manager.delete_pattern("doctor:*")

    mock_redis.keys.assert_called_once_with("doctor:*")
    mock_redis.delete.assert_called_once_with("doctor:1", "doctor:2", "doctor:list")
    assert result == 3


@pytest.mark.asyncio
async def test_doctor_caching(db_session, doctor: dict, mock_redis: MagicMock):
    """A cache miss reads the database and fills the cache."""
    service = DirectoryService(CacheManager(mock_redis))

    result = await service.get_doctor(db_session, doctor["id"])

    assert result["name"] == doctor["name"]
    mock_redis.get.assert_called_once_with(f"doctor:{doctor['id']}")
    key, ttl, payload = mock_redis.setex.call_args.args
    assert key == f"doctor:{doctor['id']}"
    assert ttl == 900
    assert json.loads(payload)["id"] == str(doctor["id"])


@pytest.mark.asyncio
async def test_doctor_cache_hit_skips_database(mock_redis: MagicMock):
    doctor_id = uuid4()
    mock_redis.get.return_value = json.dumps({"id": str(doctor_id), "name": "Dr. Cached"})
    service = DirectoryService(CacheManager(mock_redis))
    db = MagicMock()

    result = await service.get_doctor(db, doctor_id)

    assert result["name"] == "Dr. Cached"
    db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_doctor_list_caching(db_session, doctor: dict, other_doctor: dict, mock_redis):
    service = DirectoryService(CacheManager(mock_redis))

    result = await service.list_doctors(db_session)

    assert [d["name"] for d in result] == ["Dr. Alice Smith", "Dr. John Doe"]
    key, ttl, _ = mock_redis.setex.call_args.args
    assert key == DirectoryService.DOCTOR_LIST_CACHE_KEY
    assert ttl == 300


@pytest.mark.asyncio
async def test_network_partition_is_not_cached(
    db_session, clinic: dict, make_appointment, doctor: dict, mock_redis
):
    """The in-network split always reflects current bookings."""
    service = DirectoryService(CacheManager(mock_redis))

    before = await service.partition_doctors(db_session, clinic["id"])
    await make_appointment(status="booked", doctor_id=doctor["id"])
    after = await service.partition_doctors(db_session, clinic["id"])

    assert before.in_network == []
    assert [d.id for d in after.in_network] == [doctor["id"]]
    assert all(call.args[0].startswith("doctor:") for call in mock_redis.setex.call_args_list)


def test_invalidate(mock_redis: MagicMock):
    mock_redis.keys.return_value = ["doctor:list"]
    DirectoryService(CacheManager(mock_redis)).invalidate()

    mock_redis.keys.assert_any_call("doctor:*")
    mock_redis.keys.assert_any_call("clinic:*")
