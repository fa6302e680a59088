from redis import Redis
from app.settings import settings


def get_redis() -> Redis:
    # Metrics are best-effort; a slow Redis must not hold a capture page hostage.
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
    )
