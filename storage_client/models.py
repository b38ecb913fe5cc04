"""Blob property models."""
from dataclasses import dataclass
from typing import Optional

from . import constants


@dataclass
class ContentSettings:
    """Content headers stored with a blob."""
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    content_disposition: Optional[str] = None
    cache_control: Optional[str] = None

    def to_headers(self) -> dict:
        headers = {
            'x-ms-blob-content-type': self.content_type,
            'x-ms-blob-content-encoding': self.content_encoding,
            'x-ms-blob-content-language': self.content_language,
            'x-ms-blob-content-disposition': self.content_disposition,
            'x-ms-blob-cache-control': self.cache_control,
        }
        return {name: value for name, value in headers.items() if value is not None}


@dataclass
class BlobProperties:
    content_length: int = 0
    content_md5: Optional[str] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    blob_type: Optional[str] = None

    @classmethod
    def from_headers(cls, headers) -> 'BlobProperties':
        return cls(
            content_length=int(headers.get(constants.CONTENT_LENGTH, 0)),
            content_md5=headers.get(constants.CONTENT_MD5),
            content_type=headers.get(constants.CONTENT_TYPE),
            etag=headers.get(constants.ETAG),
            last_modified=headers.get('Last-Modified'),
            blob_type=headers.get(constants.MS_BLOB_TYPE),
        )


@dataclass(frozen=True)
class PageRange:
    """An inclusive byte range of a page blob that holds written pages."""
    start: int
    end: int
