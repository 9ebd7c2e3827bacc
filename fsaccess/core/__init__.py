"""fsaccess Core - Shared types, errors and validation.

Import specific names from submodules:
    from fsaccess.core.constants import OpenMode, ErrorKind
    from fsaccess.core.errors import FsError, NotFound
    from fsaccess.core.stats import FileStats
    from fsaccess.core import validators
"""

from fsaccess.core import constants, errors, stats, validators

__all__ = [
    "constants",
    "errors",
    "stats",
    "validators",
]
