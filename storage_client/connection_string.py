"""Parsing of storage connection strings into service settings."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import constants

logger = logging.getLogger(__name__)

SERVICES = ('blob', 'queue', 'table', 'file')


@dataclass
class StorageSettings:
    """Account, credentials and endpoints for a storage account."""
    account_name: Optional[str] = None
    account_key: Optional[str] = None
    sas_token: Optional[str] = None
    endpoints: Dict[str, str] = field(default_factory=dict)
    use_path_style_uri: bool = False

    def endpoint_for(self, service: str) -> str:
        try:
            return self.endpoints[service]
        except KeyError:
            raise ValueError(f"No {service} endpoint configured for account {self.account_name}")

    @classmethod
    def for_account(cls, account_name: str, account_key: Optional[str] = None,
                    sas_token: Optional[str] = None, protocol: str = 'https',
                    endpoint_suffix: str = constants.DEFAULT_ENDPOINT_SUFFIX) -> 'StorageSettings':
        endpoints = {
            service: f"{protocol}://{account_name}.{service}.{endpoint_suffix}"
            for service in SERVICES
        }
        return cls(account_name=account_name, account_key=account_key,
                   sas_token=sas_token, endpoints=endpoints)

    @classmethod
    def development_storage(cls, proxy_uri: Optional[str] = None) -> 'StorageSettings':
        host = proxy_uri.rstrip('/') if proxy_uri else f"http://{constants.DEVSTORE_HOST}"
        endpoints = {
            service: f"{host}:{port}"
            for service, port in constants.DEVSTORE_PORTS.items()
        }
        return cls(
            account_name=constants.DEVSTORE_STORAGE_ACCOUNT,
            account_key=constants.DEVSTORE_STORAGE_ACCESS_KEY,
            endpoints=endpoints,
            use_path_style_uri=True,
        )


def parse_connection_string(connection_string: str) -> StorageSettings:
    """Parse ``Key=Value;Key=Value`` connection strings.

    Raises:
        ValueError: If the string is malformed or names no account or endpoint.
    """
    if not connection_string or not connection_string.strip():
        raise ValueError("Connection string is empty")

    values: Dict[str, str] = {}
    for segment in connection_string.split(';'):
        segment = segment.strip()
        if not segment:
            continue
        if '=' not in segment:
            raise ValueError(f"Invalid connection string segment: {segment!r}")
        key, value = segment.split('=', 1)
        key = key.strip().lower()
        if not key:
            raise ValueError(f"Invalid connection string segment: {segment!r}")
        values[key] = value.strip()

    if values.get('usedevelopmentstorage', '').lower() == 'true':
        return StorageSettings.development_storage(values.get('developmentstorageproxyuri'))

    account_name = values.get('accountname')
    protocol = values.get('defaultendpointsprotocol', 'https').lower()
    if protocol not in ('http', 'https'):
        raise ValueError(f"Invalid DefaultEndpointsProtocol: {protocol}")
    suffix = values.get('endpointsuffix', constants.DEFAULT_ENDPOINT_SUFFIX)

    explicit = {
        service: values[f"{service}endpoint"].rstrip('/')
        for service in SERVICES
        if values.get(f"{service}endpoint")
    }
    if not account_name and not explicit:
        raise ValueError("Connection string must name an AccountName or a service endpoint")

    if account_name:
        settings = StorageSettings.for_account(account_name, protocol=protocol, endpoint_suffix=suffix)
        settings.endpoints.update(explicit)
    else:
        settings = StorageSettings(endpoints=explicit)

    settings.account_key = values.get('accountkey')
    settings.sas_token = values.get('sharedaccesssignature')
    if settings.account_key and settings.sas_token:
        raise ValueError("Connection string cannot carry both AccountKey and SharedAccessSignature")

    logger.debug(f"Parsed connection string for account {account_name or '<anonymous>'}")
    return settings
