# This file makes Python treat the directory 'caching' as a package.
from .label_cache import LabelCache

__all__ = [
    "LabelCache",
]
