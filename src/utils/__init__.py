"""Utility functions and helpers"""

from .club_normalizer import clubs_compatible, normalize_club, split_club_field
from .text_normalizer import core_string, normalize, significant_tokens

__all__ = [
    'clubs_compatible',
    'core_string',
    'normalize',
    'normalize_club',
    'significant_tokens',
    'split_club_field',
]
