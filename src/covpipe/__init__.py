"""covpipe - instrumented test coverage aggregation and reporting."""

__version__ = "0.1.0"
