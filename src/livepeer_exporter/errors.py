"""Exception types raised by the exporter."""


class ExporterError(Exception):
    """Base class for exporter errors."""


class ConfigError(ExporterError):
    """Invalid or missing startup configuration. Always fatal."""


class FetchError(ExporterError):
    """A single upstream request failed.

    ``kind`` is one of ``transport``, ``status`` or ``decode``. Collectors log
    it and keep their previous response buffer.
    """

    TRANSPORT = "transport"
    STATUS = "status"
    DECODE = "decode"

    def __init__(self, kind: str, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.kind = kind
        self.url = url
