"""Shared access signature policy objects."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


class AccountSasServices:
    BLOB = 'b'
    FILE = 'f'
    QUEUE = 'q'
    TABLE = 't'


class AccountSasResourceTypes:
    SERVICE = 's'
    CONTAINER = 'c'
    OBJECT = 'o'


class AccountSasPermissions:
    READ = 'r'
    ADD = 'a'
    CREATE = 'c'
    UPDATE = 'u'
    PROCESS = 'p'
    WRITE = 'w'
    DELETE = 'd'
    LIST = 'l'


class SasProtocols:
    HTTPS_ONLY = 'https'
    HTTPS_OR_HTTP = 'https,http'


DateLike = Union[datetime, str, None]


@dataclass(frozen=True)
class AccountSasPolicy:
    """Policy for an account-level shared access signature.

    Services, resource types and permissions are the concatenated letter
    codes, e.g. ``services='bq'``.
    """
    services: str
    resource_types: str
    permissions: str
    expiry: DateLike
    start: DateLike = None
    protocols: Optional[str] = None
    ip_address_or_range: Optional[str] = None


@dataclass(frozen=True)
class AccessPolicy:
    """Access policy of a service-level shared access signature."""
    permissions: Optional[str] = None
    start: DateLike = None
    expiry: DateLike = None
    # tables only
    start_pk: Optional[str] = None
    start_rk: Optional[str] = None
    end_pk: Optional[str] = None
    end_rk: Optional[str] = None


@dataclass(frozen=True)
class SharedAccessPolicy:
    access_policy: Optional[AccessPolicy] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class SasResponseHeaders:
    """Response header overrides for a blob returned through a SAS."""
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    content_type: Optional[str] = None
