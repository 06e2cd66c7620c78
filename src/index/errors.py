"""Error taxonomy for the index computation engine.

All errors derive from ValueError so batch callers can catch them the same
way they catch any other per-item failure and keep going.
"""


class IndexEngineError(ValueError):
    """Base class for definitive per-day computation failures."""


class NoComposition(IndexEngineError):
    """The index has no current members."""


class NoPriceableAssets(IndexEngineError):
    """No member had both a today and a yesterday price (total weight is zero)."""


class MissingHistoryBase(IndexEngineError):
    """A non-genesis day was requested but no earlier point exists to compound from."""


class DataSourceUnavailable(IndexEngineError):
    """An external data source failed while computing a day."""


class DataSourceTimeout(DataSourceUnavailable):
    """A market data lookup did not answer within the configured timeout."""


class DuplicateRecompute(IndexEngineError):
    """The computed row is identical to the stored one; nothing was written."""
