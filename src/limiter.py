from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from src.config import settings


def get_client_ip(request: Request) -> str:
    """Rate limit by the visitor's IP as reported by the proxy, falling back to the peer address."""
    return request.headers.get("cf-connecting-ip") or get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.DEFAULT_RATELIMIT]
)
