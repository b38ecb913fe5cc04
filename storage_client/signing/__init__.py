from .sas import (
    AccessPolicy,
    AccountSasPermissions,
    AccountSasPolicy,
    AccountSasResourceTypes,
    AccountSasServices,
    SasProtocols,
    SasResponseHeaders,
    SharedAccessPolicy,
)
from .shared_key import SharedKey
from .token import SharedAccessSignatureSigner, TokenCredential, TokenSigner

__all__ = [
    'AccessPolicy',
    'AccountSasPermissions',
    'AccountSasPolicy',
    'AccountSasResourceTypes',
    'AccountSasServices',
    'SasProtocols',
    'SasResponseHeaders',
    'SharedAccessPolicy',
    'SharedKey',
    'SharedAccessSignatureSigner',
    'TokenCredential',
    'TokenSigner',
]
