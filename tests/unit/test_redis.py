"""Tests for Redis client module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisClientConnectionError

from earnpulse.core.exceptions import RedisConnectionError
from earnpulse.storage.redis import (
    close_redis,
    get_redis,
    init_redis,
)


class TestGetRedis:
    """Tests for get_redis function."""

    def test_not_initialized(self) -> None:
        """Test get_redis raises if not initialized."""
        import earnpulse.storage.redis as redis_module

        redis_module._redis = None

        with pytest.raises(RuntimeError, match="not initialized"):
            get_redis()

    def test_returns_instance(self) -> None:
        """Test get_redis returns the instance."""
        import earnpulse.storage.redis as redis_module

        mock_redis = MagicMock()
        redis_module._redis = mock_redis

        assert get_redis() is mock_redis

        # Cleanup
        redis_module._redis = None


class TestInitRedis:
    """Tests for init_redis function."""

    @pytest.mark.asyncio
    async def test_init_creates_client(self) -> None:
        """Test init_redis creates and pings the Redis client."""
        import earnpulse.storage.redis as redis_module

        mock_redis = MagicMock()
        mock_redis.ping = AsyncMock(return_value=True)

        with patch("earnpulse.storage.redis.Redis") as mock_redis_cls:
            mock_redis_cls.from_url.return_value = mock_redis

            result = await init_redis("redis://localhost:6379")

        assert result is mock_redis
        assert redis_module._redis is mock_redis
        mock_redis.ping.assert_awaited_once()
        mock_redis_cls.from_url.assert_called_once_with(
            "redis://localhost:6379",
            decode_responses=False,
        )

        # Cleanup
        redis_module._redis = None

    @pytest.mark.asyncio
    async def test_init_unreachable_server(self) -> None:
        """Test init_redis raises and leaves no global when PING fails."""
        import earnpulse.storage.redis as redis_module

        redis_module._redis = None
        mock_redis = MagicMock()
        mock_redis.ping = AsyncMock(side_effect=RedisClientConnectionError("refused"))
        mock_redis.aclose = AsyncMock()

        with patch("earnpulse.storage.redis.Redis") as mock_redis_cls:
            mock_redis_cls.from_url.return_value = mock_redis

            with pytest.raises(RedisConnectionError, match="refused"):
                await init_redis("redis://localhost:6379")

        mock_redis.aclose.assert_awaited_once()
        assert redis_module._redis is None


class TestCloseRedis:
    """Tests for close_redis function."""

    @pytest.mark.asyncio
    async def test_close_when_initialized(self) -> None:
        """Test close_redis closes the client."""
        import earnpulse.storage.redis as redis_module

        mock_redis = MagicMock()
        mock_redis.aclose = AsyncMock()
        redis_module._redis = mock_redis

        await close_redis()

        mock_redis.aclose.assert_called_once()
        assert redis_module._redis is None

    @pytest.mark.asyncio
    async def test_close_when_not_initialized(self) -> None:
        """Test close_redis handles None gracefully."""
        import earnpulse.storage.redis as redis_module

        redis_module._redis = None

        # Should not raise
        await close_redis()

        assert redis_module._redis is None
