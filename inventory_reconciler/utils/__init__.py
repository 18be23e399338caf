from .date_utils import parse_timestamp, to_iso_or_null, since_iso, utc_now_iso
from .pagination import iter_pages, chunked

__all__ = [
    'parse_timestamp',
    'to_iso_or_null',
    'since_iso',
    'utc_now_iso',
    'iter_pages',
    'chunked'
]
