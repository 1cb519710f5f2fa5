"""Link and image reference checker for books written in markdown."""

__version__ = "0.1.0"

from .config import ConfigError, LinkCheckConfig, WarningPolicy, load_config
from .diagnostics import Report
from .models import Book, Document, LinkOccurrence, Outcome
from .orchestrator import LinkChecker

__all__ = [
    "Book",
    "ConfigError",
    "Document",
    "LinkCheckConfig",
    "LinkChecker",
    "LinkOccurrence",
    "Outcome",
    "Report",
    "WarningPolicy",
    "__version__",
    "load_config",
]
