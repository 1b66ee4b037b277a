"""
specrun: a hierarchical describe/it test runner with file-backed snapshot assertions.
"""

APP_NAME = 'specrun'

__version__ = '1.0.0'
