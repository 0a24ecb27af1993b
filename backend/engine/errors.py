"""Error taxonomy shared by the engine and the scanner service.

Timeouts are reported as ``asyncio.TimeoutError`` (what ``asyncio.wait_for``
raises; an alias of the built-in ``TimeoutError`` from Python 3.11), so there
is no dedicated class for them.
"""


class ScannerError(Exception):
    """Base class for all scanner errors."""


class DataError(ScannerError):
    """Candle series is empty or malformed; fatal to a single computation."""


class MarketDataError(ScannerError):
    """Market-data collaborator could not deliver data after its retries."""


class ExternalServiceError(ScannerError):
    """Optional analysis service is unreachable or returned malformed data."""


class FormattingError(ScannerError):
    """A downstream report could not be rendered."""


class PersistenceError(ScannerError):
    """A downstream report could not be written."""
