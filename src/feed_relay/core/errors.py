"""Error taxonomy for the delivery pipeline."""


class FeedRelayError(Exception):
    """Base class for pipeline errors."""


class FetchError(FeedRelayError):
    """A feed could not be retrieved or parsed."""


class RenderError(FeedRelayError):
    """A payload could not be built for an item."""


class DispatchError(FeedRelayError):
    """A destination could not be resolved or a send failed."""


class PersistenceError(FeedRelayError):
    """A watermark could not be read or written."""
