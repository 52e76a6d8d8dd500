"""
Login Session Management with Redis (with in-memory fallback)

Every access token references a server-side session. Deleting a user's
sessions invalidates their logins immediately, which the deletion flow
relies on.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

import redis.asyncio as redis

from privacyflow.config import settings
from privacyflow.utils.clock import utcnow

logger = logging.getLogger(__name__)


class InMemorySessionManager:
    """
    In-memory session manager used when no Redis URL is configured.
    Note: Sessions are lost on server restart and won't scale across instances.
    """

    def __init__(self):
        self._sessions: dict[str, dict[str, Any]] = {}
        self._user_sessions: dict[str, set[str]] = {}
        self._expirations: dict[str, datetime] = {}

    def _cleanup_expired(self):
        now = utcnow()
        expired = [sid for sid, exp in self._expirations.items() if exp < now]
        for sid in expired:
            self._delete_session_internal(sid)

    def _delete_session_internal(self, session_id: str):
        session_data = self._sessions.pop(session_id, None)
        self._expirations.pop(session_id, None)
        if session_data:
            user_id = session_data.get("user_id")
            if user_id in self._user_sessions:
                self._user_sessions[user_id].discard(session_id)

    async def connect(self):
        logger.info("Using in-memory session storage")

    async def disconnect(self):
        self._sessions.clear()
        self._user_sessions.clear()
        self._expirations.clear()

    async def create_session(self, user_id: str, user_email: str) -> str:
        self._cleanup_expired()
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = {
            "user_id": user_id,
            "email": user_email,
            "created_at": utcnow().isoformat(),
        }
        self._expirations[session_id] = utcnow() + timedelta(seconds=settings.session_expire_seconds)
        self._user_sessions.setdefault(user_id, set()).add(session_id)

        logger.info(f"Created in-memory session {session_id} for user {user_id}")
        return session_id

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        self._cleanup_expired()
        data = self._sessions.get(session_id)
        return data.copy() if data else None

    async def delete_session(self, session_id: str) -> bool:
        if session_id in self._sessions:
            self._delete_session_internal(session_id)
            logger.info(f"Deleted in-memory session {session_id}")
            return True
        return False

    async def delete_all_user_sessions(self, user_id: str) -> int:
        session_ids = list(self._user_sessions.pop(user_id, set()))
        for sid in session_ids:
            self._delete_session_internal(sid)
        logger.info(f"Deleted {len(session_ids)} in-memory sessions for user {user_id}")
        return len(session_ids)


class RedisSessionManager:
    """
    Manages login sessions in Redis.

    Keys:
    - ``session:{id}`` holds the JSON session payload with a TTL
    - ``user_sessions:{user_id}`` is the set of a user's session ids
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._redis: redis.Redis | None = None

    async def connect(self):
        if self._redis is not None:
            return
        try:
            self._redis = redis.Redis.from_url(self._redis_url, decode_responses=True)
            await self._redis.ping()
            logger.info("Successfully connected to Redis")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._redis = None
            raise

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        logger.info("Disconnected from Redis")

    async def create_session(self, user_id: str, user_email: str) -> str:
        await self.connect()

        session_id = str(uuid.uuid4())
        session_data = {
            "user_id": user_id,
            "email": user_email,
            "created_at": utcnow().isoformat(),
        }

        await self._redis.setex(f"session:{session_id}", settings.session_expire_seconds, json.dumps(session_data))

        user_sessions_key = f"user_sessions:{user_id}"
        await self._redis.sadd(user_sessions_key, session_id)
        await self._redis.expire(user_sessions_key, settings.session_expire_seconds)

        logger.info(f"Created session {session_id} for user {user_id}")
        return session_id

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        await self.connect()

        raw = await self._redis.get(f"session:{session_id}")
        if not raw:
            logger.debug(f"Session {session_id} not found or expired")
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Failed to decode session data for {session_id}")
            return None

    async def delete_session(self, session_id: str) -> bool:
        await self.connect()

        session_data = await self.get_session(session_id)
        deleted = await self._redis.delete(f"session:{session_id}")
        if session_data and "user_id" in session_data:
            await self._redis.srem(f"user_sessions:{session_data['user_id']}", session_id)

        logger.info(f"Deleted session {session_id}")
        return bool(deleted)

    async def delete_all_user_sessions(self, user_id: str) -> int:
        await self.connect()

        user_sessions_key = f"user_sessions:{user_id}"
        session_ids = await self._redis.smembers(user_sessions_key)

        count = 0
        for session_id in session_ids:
            count += await self._redis.delete(f"session:{session_id}")
        await self._redis.delete(user_sessions_key)

        logger.info(f"Deleted {count} sessions for user {user_id}")
        return count


_session_manager: RedisSessionManager | InMemorySessionManager | None = None


async def get_session_manager() -> RedisSessionManager | InMemorySessionManager:
    """
    Dependency returning the process-wide session manager.
    Uses Redis when a URL is configured and reachable, in-memory otherwise.
    """
    global _session_manager

    if _session_manager is not None:
        return _session_manager

    if settings.redis_url:
        try:
            manager = RedisSessionManager(settings.redis_url)
            await manager.connect()
            _session_manager = manager
            logger.info("Session manager using Redis")
            return _session_manager
        except Exception as e:
            logger.warning(f"Redis not available, using in-memory sessions: {e}")

    _session_manager = InMemorySessionManager()
    await _session_manager.connect()
    return _session_manager
