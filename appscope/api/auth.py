from typing import Optional
import hmac
from fastapi import Header
from appscope.config import settings
from appscope.errors import UnauthorizedError


def _matches(presented: Optional[str], expected: str) -> bool:
    if presented is None:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


async def verify_write_key(x_write_key: Optional[str] = Header(None)):
    if not _matches(x_write_key, settings.write_key):
        raise UnauthorizedError()


async def verify_read_key(x_read_key: Optional[str] = Header(None)):
    if not _matches(x_read_key, settings.read_key):
        raise UnauthorizedError()
