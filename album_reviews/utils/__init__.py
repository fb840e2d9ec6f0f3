"""
Shared utilities: logging presets for the API and scripts.
"""

from album_reviews.utils.logging_config import configure_api_logging, configure_script_logging, setup_logging

__all__ = ['setup_logging', 'configure_api_logging', 'configure_script_logging']
