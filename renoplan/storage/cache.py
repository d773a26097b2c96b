import json
import hashlib
from typing import Any, Dict, Optional

import redis

from renoplan.config.settings import get_settings

settings = get_settings()


class SimulationCache:
    """Redis cache for seeded simulation responses; unseeded runs are never cached."""

    def __init__(self, redis_url: str = settings.redis_url, client: Optional[redis.Redis] = None):
        self.redis_client = client if client is not None else redis.from_url(redis_url, decode_responses=True)

    def get(self, request_hash: str) -> Optional[Dict]:
        """Retrieve cached simulation by request hash."""
        cached = self.redis_client.get(f"simulation:{request_hash}")
        if cached:
            return json.loads(cached)
        return None

    def set(self, request_hash: str, payload: Dict, ttl_seconds: int = settings.cache_ttl_seconds) -> None:
        """Cache simulation with TTL."""
        self.redis_client.setex(
            f"simulation:{request_hash}",
            ttl_seconds,
            json.dumps(payload, default=str)
        )

    @staticmethod
    def hash_request(request: Dict[str, Any]) -> str:
        """Generate hash from the full simulation request, seed included."""
        data = json.dumps(request, sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False
