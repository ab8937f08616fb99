"""
recordql utilities.
"""

from recordql.utils.cache import HandleCache, compute_config_hash
from recordql.utils.defaults import DEFAULT_DEV, DEFAULT_PROD, BindingDefaults

__all__ = [
    # Defaults
    "BindingDefaults",
    "DEFAULT_PROD",
    "DEFAULT_DEV",
    # Cache
    "HandleCache",
    "compute_config_hash",
]
