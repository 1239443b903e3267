"""
Data Ingestion Module
"""
from .collector import CollectionService
from .normalizers import normalize, normalize_page, parse_global_id
from .pagination import Cursor, CursorKind, Page, Paginator, extract_next_cursor

__all__ = [
    "CollectionService",
    "Cursor",
    "CursorKind",
    "Page",
    "Paginator",
    "extract_next_cursor",
    "normalize",
    "normalize_page",
    "parse_global_id",
]
