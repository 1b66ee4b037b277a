"""
Configuration flags read from environment variables.

All flags are re-read on every call so that each test file run observes
the environment as it is when that run starts.
"""

import os


UPDATE_SNAPSHOTS_VAR = 'SPECRUN_UPDATE_SNAPSHOTS'


def update_snapshots_requested() -> bool:
    """
    Returns whether snapshot assertions should record new snapshots
    rather than verify against the stored ones.
    """
    return os.environ.get(UPDATE_SNAPSHOTS_VAR, '') == '1'


def colors_requested() -> bool:
    # https://no-color.org/
    return os.environ.get('NO_COLOR', '') == ''
