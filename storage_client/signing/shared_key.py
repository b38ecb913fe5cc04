"""Shared key request signing and shared access signature generation."""
import base64
import binascii
import hashlib
import hmac
from typing import Dict, Optional
from urllib.parse import unquote, urlencode

from .. import constants
from ..errors import AuthenticationError
from ..utils import truncated_iso8601
from .sas import AccountSasPolicy, SasResponseHeaders, SharedAccessPolicy


class SharedKey:
    """Signs requests with an account name and its base64 encoded key.

    Instances are immutable and safe to share between threads. To switch
    credentials, build a new SharedKey.
    """

    def __init__(self, account_name: str, account_key: str, use_path_style_uri: bool = False):
        if not account_name:
            raise AuthenticationError("Storage account name is required for shared key signing")
        if not account_key:
            raise AuthenticationError("Storage access key is required for shared key signing")
        try:
            key = base64.b64decode(account_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AuthenticationError(f"Storage access key is not valid base64: {e}") from e
        if not key:
            raise AuthenticationError("Storage access key decodes to an empty value")

        self._account_name = account_name
        self._key = key
        self._use_path_style_uri = use_path_style_uri

    @property
    def account_name(self) -> str:
        return self._account_name

    @property
    def use_path_style_uri(self) -> bool:
        return self._use_path_style_uri

    def sign(self, string_to_sign: str) -> str:
        """Base64 HMAC-SHA256 of the UTF-8 string with the account key."""
        digest = hmac.new(self._key, string_to_sign.encode('utf-8'), hashlib.sha256).digest()
        return base64.b64encode(digest).decode('utf-8')

    def sign_request(self, web_resource) -> None:
        """Set the Authorization header on the request."""
        string_to_sign = self.get_string_to_sign(web_resource)
        signature = self.sign(string_to_sign)
        web_resource.headers[constants.AUTHORIZATION] = f"SharedKey {self._account_name}:{signature}"

    def get_string_to_sign(self, web_resource) -> str:
        headers = web_resource.headers
        parts = [web_resource.method.upper() + '\n']
        for name in constants.SIGNED_STANDARD_HEADERS:
            value = headers.get(name)
            # content-length 0 is signed as an empty line since 2015-02-21
            if name == constants.CONTENT_LENGTH and str(value) == '0':
                value = None
            parts.append(('' if value is None else str(value)) + '\n')
        parts.append(self._get_canonicalized_headers(web_resource))
        parts.append(self._get_canonicalized_resource(web_resource))
        return ''.join(parts)

    def _get_canonicalized_headers(self, web_resource) -> str:
        canonicalized = {}
        for name, value in web_resource.headers.items():
            lowered = name.lower()
            if not lowered.startswith(constants.PREFIX_FOR_STORAGE_HEADER):
                continue
            if isinstance(value, (list, tuple)):
                value = ','.join(str(v).strip() for v in value)
            value = '' if value is None else str(value).strip()
            if value:
                canonicalized[lowered] = value

        return ''.join(f"{name}:{canonicalized[name]}\n" for name in sorted(canonicalized))

    def _get_canonicalized_resource(self, web_resource) -> str:
        path = unquote(web_resource.path) if web_resource.path else '/'
        resource = '/' + self._account_name + path

        query: Dict[str, list] = {}
        for name, value in web_resource.query.items():
            values = value if isinstance(value, (list, tuple)) else [value]
            query.setdefault(name.lower(), []).extend(str(v) for v in values)

        for name in sorted(query):
            resource += f"\n{name}:{','.join(sorted(query[name]))}"
        return resource

    def generate_account_signed_query_string(self, policy: AccountSasPolicy,
                                             sas_version: Optional[str] = None) -> str:
        """Build the account SAS query string for the given policy."""
        sas_version = _validate_sas_version(sas_version)
        start = truncated_iso8601(policy.start)
        expiry = truncated_iso8601(policy.expiry)

        string_to_sign = '\n'.join([
            self._account_name,
            policy.permissions or '',
            policy.services or '',
            policy.resource_types or '',
            start or '',
            expiry or '',
            policy.ip_address_or_range or '',
            policy.protocols or '',
            sas_version,
        ]) + '\n'

        query = {}
        _add_if_not_none(query, constants.SIGNED_VERSION, sas_version)
        _add_if_not_none(query, constants.SIGNED_SERVICES, policy.services)
        _add_if_not_none(query, constants.SIGNED_RESOURCE_TYPES, policy.resource_types)
        _add_if_not_none(query, constants.SIGNED_PERMISSIONS, policy.permissions)
        _add_if_not_none(query, constants.SIGNED_START, start)
        _add_if_not_none(query, constants.SIGNED_EXPIRY, expiry)
        _add_if_not_none(query, constants.SIGNED_PROTOCOL, policy.protocols)
        _add_if_not_none(query, constants.SIGNED_IP, policy.ip_address_or_range)
        query[constants.SIGNATURE] = self.sign(string_to_sign)
        return urlencode(query)

    def generate_signed_query_string(self, path: str, policy: SharedAccessPolicy,
                                     sas_version: Optional[str] = None,
                                     resource_type: Optional[str] = None,
                                     headers: Optional[SasResponseHeaders] = None,
                                     table_name: Optional[str] = None) -> str:
        """Build a service SAS query string for a blob, container, queue or table.

        Args:
            path: Resource path, e.g. ``container/blob``.
            policy: Access policy and/or signed identifier.
            sas_version: Storage service version to sign with.
            resource_type: ``b`` or ``c`` for blobs and containers.
            headers: Response header overrides (blobs only).
            table_name: Table name when signing a table resource.
        """
        sas_version = _validate_sas_version(sas_version)
        access = policy.access_policy
        start = truncated_iso8601(access.start) if access else None
        expiry = truncated_iso8601(access.expiry) if access else None

        query = {}
        if access:
            _add_if_not_none(query, constants.SIGNED_START, start)
            _add_if_not_none(query, constants.SIGNED_EXPIRY, expiry)
            _add_if_not_none(query, constants.SIGNED_PERMISSIONS, access.permissions)
            _add_if_not_none(query, constants.SAS_START_PK, access.start_pk)
            _add_if_not_none(query, constants.SAS_END_PK, access.end_pk)
            _add_if_not_none(query, constants.SAS_START_RK, access.start_rk)
            _add_if_not_none(query, constants.SAS_END_RK, access.end_rk)
        _add_if_not_none(query, constants.SIGNED_VERSION, sas_version)
        _add_if_not_none(query, constants.SIGNED_IDENTIFIER, policy.id)
        _add_if_not_none(query, constants.SIGNED_RESOURCE, resource_type)
        if headers:
            _add_if_not_none(query, constants.SAS_CACHE_CONTROL, headers.cache_control)
            _add_if_not_none(query, constants.SAS_CONTENT_TYPE, headers.content_type)
            _add_if_not_none(query, constants.SAS_CONTENT_ENCODING, headers.content_encoding)
            _add_if_not_none(query, constants.SAS_CONTENT_LANGUAGE, headers.content_language)
            _add_if_not_none(query, constants.SAS_CONTENT_DISPOSITION, headers.content_disposition)
        _add_if_not_none(query, constants.SAS_TABLE_NAME, table_name)

        query[constants.SIGNATURE] = self._generate_signature(
            path, policy, start, expiry, sas_version, resource_type, headers, table_name
        )
        return urlencode(query)

    def _generate_signature(self, path, policy, start, expiry, sas_version,
                            resource_type, headers, table_name) -> str:
        access = policy.access_policy
        if not path.startswith('/'):
            path = '/' + path

        string_to_sign = '\n'.join([
            (access.permissions if access else None) or '',
            start or '',
            expiry or '',
            '/' + self._account_name + path,
            policy.id or '',
            sas_version,
        ])

        if sas_version == constants.SAS_VERSION_FEBRUARY_2012:
            if headers:
                raise ValueError("Response header overrides require SAS version 2013-08-15 or later")
        elif resource_type:
            headers = headers or SasResponseHeaders()
            string_to_sign += '\n' + '\n'.join([
                headers.cache_control or '',
                headers.content_disposition or '',
                headers.content_encoding or '',
                headers.content_language or '',
                headers.content_type or '',
            ])

        if table_name:
            string_to_sign += '\n' + '\n'.join([
                (access.start_pk if access else None) or '',
                (access.start_rk if access else None) or '',
                (access.end_pk if access else None) or '',
                (access.end_rk if access else None) or '',
            ])

        return self.sign(string_to_sign)


def _add_if_not_none(query: dict, name: str, value) -> None:
    if value is not None:
        query[name] = value


def _validate_sas_version(sas_version: Optional[str]) -> str:
    if sas_version is None:
        return constants.TARGET_STORAGE_VERSION
    for version in constants.COMPATIBLE_SAS_VERSIONS:
        if version.lower() == sas_version.lower():
            return version
    raise ValueError(
        f"Invalid SAS version {sas_version}; supported versions are "
        f"{', '.join(constants.COMPATIBLE_SAS_VERSIONS)}"
    )
