"""API key resolution.

Resolution order (stops at first success):
  1. CONTRACTLENS_API_KEY / DEEPSEEK_API_KEY environment variables
     (already read by load_config into config["api_key"])
  2. credentials.json in the application directory (written by `contractlens init`)
"""

from __future__ import annotations

import logging

from contractlens_store.credentials import CredentialsFile

logger = logging.getLogger(__name__)


def resolve_api_key(config: dict) -> str | None:
    """Return an API key or None if no source has one.

    Never raises; callers report a missing key when a command needs it.
    """
    key = config.get("api_key")
    if key:
        return key

    key = CredentialsFile().load_api_key()
    if key:
        logger.debug("Resolved API key from credentials file.")
    return key
