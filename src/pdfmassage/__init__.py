"""pdfmassage - orchestrates identify, convert and pdftk over PDF and image documents."""

import logging

from pdfmassage.config import MassageConfig, ToolPaths, Unit, load_config
from pdfmassage.exceptions import (
    ConfigError,
    ErrorKind,
    InvalidDocumentError,
    InvalidLocatorError,
    InvalidRotationError,
    MassageError,
    ProcessingError,
)
from pdfmassage.metadata import MetaData, calculate_dpi
from pdfmassage.operations import Massager, PageArtifact

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "Massager",
    "MassageConfig",
    "ToolPaths",
    "Unit",
    "load_config",
    "MetaData",
    "PageArtifact",
    "calculate_dpi",
    "MassageError",
    "ErrorKind",
    "InvalidLocatorError",
    "InvalidDocumentError",
    "InvalidRotationError",
    "ProcessingError",
    "ConfigError",
]

# Prevent "No handler found" warnings when used as a library
logging.getLogger("pdfmassage").addHandler(logging.NullHandler())
