"""
Project-wide configuration constants.

Module Contents:
    APP_NAME: Application name for display purposes
    CONFIG_DIR: Per-user directory for stored credentials
    DEFAULT_SOURCE_LANG / DEFAULT_TARGET_LANG: Default language pair
    DEFAULT_MAX_TOKENS: Token budget of one translation call
    TIKTOKEN_ENCODING: Encoding used to estimate token counts
    RERUN_LIMIT: Reruns of a failed translation call
    RETRY_LIMIT: Polls of an asynchronous translation job after the first
    POLL_INTERVAL: Seconds between two polls
    POLL_DEADLINE_MARGIN: Slack added to the poll loop deadline

Example:
    >>> from mdtrans.config import DEFAULT_MAX_TOKENS
    >>> print(f"Budget: {DEFAULT_MAX_TOKENS} tokens")
"""

from pathlib import Path

# Application name for display and identification
APP_NAME = "MDTrans"

# Credentials fallback file lives here
CONFIG_DIR = Path.home() / ".mdtrans"

DEFAULT_SOURCE_LANG = "en"
DEFAULT_TARGET_LANG = "ja"

# Observed provider limits range from 1024 to 1920
DEFAULT_MAX_TOKENS = 1024
TIKTOKEN_ENCODING = "cl100k_base"

RERUN_LIMIT = 3
RETRY_LIMIT = 12
POLL_INTERVAL = 5.0
POLL_DEADLINE_MARGIN = 30.0

# MIME types handed to the backend
GUARDED_MIME_TYPE = "text/html"
PLAIN_MIME_TYPE = "text/plain"
