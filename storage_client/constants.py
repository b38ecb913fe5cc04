"""
Wire-level constants for the storage REST protocol.
"""

# Versions
TARGET_STORAGE_VERSION = '2017-04-17'
COMPATIBLE_SAS_VERSIONS = (
    '2012-02-12',
    '2013-08-15',
    '2014-02-14',
    '2015-04-05',
    '2015-07-08',
    '2015-12-11',
    '2016-05-31',
    '2017-04-17',
)
SAS_VERSION_FEBRUARY_2012 = '2012-02-12'

USER_AGENT_PRODUCT_NAME = 'storage-client-python'
USER_AGENT_PRODUCT_VERSION = '0.1.0'

# Development storage (emulator)
DEVSTORE_STORAGE_ACCOUNT = 'devstoreaccount1'
DEVSTORE_STORAGE_ACCESS_KEY = (
    'Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=='
)
DEVSTORE_HOST = '127.0.0.1'
DEVSTORE_PORTS = {'blob': 10000, 'queue': 10001, 'table': 10002}
DEFAULT_ENDPOINT_SUFFIX = 'core.windows.net'

# Headers
PREFIX_FOR_STORAGE_HEADER = 'x-ms-'
AUTHORIZATION = 'Authorization'
CONTENT_ENCODING = 'Content-Encoding'
CONTENT_LANGUAGE = 'Content-Language'
CONTENT_LENGTH = 'Content-Length'
CONTENT_MD5 = 'Content-MD5'
CONTENT_TYPE = 'Content-Type'
DATE = 'Date'
IF_MODIFIED_SINCE = 'If-Modified-Since'
IF_MATCH = 'If-Match'
IF_NONE_MATCH = 'If-None-Match'
IF_UNMODIFIED_SINCE = 'If-Unmodified-Since'
RANGE = 'Range'
USER_AGENT = 'User-Agent'
ACCEPT = 'Accept'
ACCEPT_CHARSET = 'Accept-Charset'
ETAG = 'ETag'

MS_DATE = 'x-ms-date'
MS_VERSION = 'x-ms-version'
MS_CLIENT_REQUEST_ID = 'x-ms-client-request-id'
MS_REQUEST_ID = 'x-ms-request-id'
MS_RANGE = 'x-ms-range'
MS_RANGE_GET_CONTENT_MD5 = 'x-ms-range-get-content-md5'
MS_BLOB_TYPE = 'x-ms-blob-type'
MS_BLOB_CONTENT_LENGTH = 'x-ms-blob-content-length'
MS_BLOB_CONTENT_MD5 = 'x-ms-blob-content-md5'
MS_BLOB_CONTENT_TYPE = 'x-ms-blob-content-type'
MS_BLOB_SEQUENCE_NUMBER = 'x-ms-blob-sequence-number'
MS_PAGE_WRITE = 'x-ms-page-write'
MS_LEASE_ID = 'x-ms-lease-id'
MS_ERROR_CODE = 'x-ms-error-code'

# Headers that go into the fixed part of the shared key string-to-sign, in order.
SIGNED_STANDARD_HEADERS = (
    CONTENT_ENCODING,
    CONTENT_LANGUAGE,
    CONTENT_LENGTH,
    CONTENT_MD5,
    CONTENT_TYPE,
    DATE,
    IF_MODIFIED_SINCE,
    IF_MATCH,
    IF_NONE_MATCH,
    IF_UNMODIFIED_SINCE,
    RANGE,
)

# Query string parameters
QUERY_TIMEOUT = 'timeout'
QUERY_RESTYPE = 'restype'
QUERY_COMP = 'comp'
QUERY_BLOCK_ID = 'blockid'
SIGNED_VERSION = 'sv'
SIGNED_SERVICES = 'ss'
SIGNED_RESOURCE_TYPES = 'srt'
SIGNED_PERMISSIONS = 'sp'
SIGNED_START = 'st'
SIGNED_EXPIRY = 'se'
SIGNED_PROTOCOL = 'spr'
SIGNED_IP = 'sip'
SIGNED_RESOURCE = 'sr'
SIGNED_IDENTIFIER = 'si'
SIGNATURE = 'sig'
SAS_CACHE_CONTROL = 'rscc'
SAS_CONTENT_DISPOSITION = 'rscd'
SAS_CONTENT_ENCODING = 'rsce'
SAS_CONTENT_LANGUAGE = 'rscl'
SAS_CONTENT_TYPE = 'rsct'
SAS_TABLE_NAME = 'tn'
SAS_START_PK = 'spk'
SAS_START_RK = 'srk'
SAS_END_PK = 'epk'
SAS_END_RK = 'erk'

# Blob limits
PAGE_SIZE = 512
DEFAULT_SINGLE_BLOB_PUT_THRESHOLD_IN_BYTES = 32 * 1024 * 1024
DEFAULT_WRITE_BLOCK_SIZE_IN_BYTES = 4 * 1024 * 1024
DEFAULT_WRITE_PAGE_SIZE_IN_BYTES = 4 * 1024 * 1024
MAX_BLOCK_SIZE = 100 * 1024 * 1024
MAX_UPDATE_PAGE_SIZE = 4 * 1024 * 1024
DEFAULT_SINGLE_BLOB_GET_THRESHOLD_IN_BYTES = 32 * 1024 * 1024
MAX_RANGE_GET_SIZE_WITH_MD5 = 4 * 1024 * 1024
DEFAULT_PARALLEL_OPERATION_THREAD_COUNT = 1

BLOB_TYPE_BLOCK = 'BlockBlob'
BLOB_TYPE_PAGE = 'PageBlob'
