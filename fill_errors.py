"""Exceptions raised while filling a PDF template.

Each error also subclasses the builtin it stands in for, so callers that
already catch ``ValueError`` / ``IndexError`` / ``OSError`` keep working.
"""


class PdfFillError(Exception):
    """Base class for all fill failures."""


class UnknownFieldError(PdfFillError, LookupError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f'Unknown field "{field_name}" (no mapping found).')
        self.field_name = field_name


class FieldConfigError(PdfFillError, ValueError):
    pass


class PageIndexError(PdfFillError, IndexError):
    def __init__(self, page_index: int, page_count: int) -> None:
        super().__init__(f"Page {page_index} out of range. PDF has {page_count} page(s).")
        self.page_index = page_index
        self.page_count = page_count


class DocumentLoadError(PdfFillError, ValueError):
    pass


class FontLoadError(PdfFillError, OSError):
    pass
