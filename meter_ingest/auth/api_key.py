"""Operator API key for endpoints that change cache or pipeline state.

The key comes from ``Settings.ingest_api_key`` (``INGEST_API_KEY``). Read-only
endpoints stay open; mutating ones depend on ``require_api_key``.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from common.config import Settings
from ..dependencies import get_app_settings

logger = logging.getLogger(__name__)


def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Reject operator requests without the configured key.

    With no key configured, production refuses every operator request and
    other environments let it through with a warning.
    """
    if not settings.ingest_api_key:
        if settings.is_production:
            logger.error("OPERATOR_AUTH_MISCONFIGURED env=%s", settings.environment)
            raise HTTPException(status_code=503, detail="operator access not configured")
        logger.warning("OPERATOR_AUTH_DISABLED env=%s", settings.environment)
        return

    if x_api_key is None:
        raise HTTPException(status_code=401, detail="missing X-API-Key header")
    if not hmac.compare_digest(x_api_key.encode(), settings.ingest_api_key.encode()):
        logger.warning("OPERATOR_AUTH_REJECTED")
        raise HTTPException(status_code=401, detail="invalid operator key")
