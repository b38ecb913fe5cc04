"""Small helpers shared across the client."""
import base64
import hashlib
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Union

_SIZE_UNITS = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']


def get_content_md5(data: Union[bytes, str]) -> str:
    """Base64 encoded MD5 of the data, as used by Content-MD5 headers."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return base64.b64encode(hashlib.md5(data).digest()).decode('utf-8')


def encode_md5_digest(md5) -> str:
    return base64.b64encode(md5.digest()).decode('utf-8')


def rfc1123_now() -> str:
    """Current time in the format used by Date / x-ms-date headers."""
    return formatdate(usegmt=True)


def truncated_iso8601(value: Union[datetime, str, None]):
    """Format a datetime as YYYY-MM-DDTHH:MM:SSZ, dropping fractional seconds.

    Naive datetimes are assumed to be UTC. Strings are passed through.
    """
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%SZ')


def to_human_readable_size(size: float) -> str:
    index = 0
    while size >= 1024 and index < len(_SIZE_UNITS) - 1:
        size /= 1024
        index += 1
    return f"{size:.2f}{_SIZE_UNITS[index]}"


def is_all_zero(data: bytes) -> bool:
    return not data.strip(b'\x00')
