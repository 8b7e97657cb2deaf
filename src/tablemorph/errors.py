from __future__ import annotations


class TableMorphError(Exception):
    """Base error for the TableMorph engine."""


class FormatError(TableMorphError):
    """Raised when an audio container cannot be parsed."""


class EmptyInputError(TableMorphError):
    """Raised when a morph is requested without any usable sample frames."""


class ConfigurationError(TableMorphError):
    """Raised when frame or sample counts fall outside the supported range."""
