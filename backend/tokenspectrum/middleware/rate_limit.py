from slowapi import Limiter
from starlette.requests import Request


def get_client_key(request: Request) -> str:
    """Rate-limit key: the first X-Forwarded-For hop behind our proxy, else the peer address.

    Writes and decryptions each cost a signature or a transaction, so limits
    are per client rather than global.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=get_client_key)
