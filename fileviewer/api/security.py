# fileviewer/api/security.py - Shared-secret header check for node endpoints

import secrets
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..core.config import API_KEY_HEADER

logger = logging.getLogger(__name__)


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias=API_KEY_HEADER, include_in_schema=False),
) -> None:
    """Rejects requests without the node's shared secret. No-op when the node has no key configured."""
    expected = request.app.state.settings.api_key
    if not expected:
        return
    if not x_api_key:
        logger.warning(f"Request to {request.url.path} without {API_KEY_HEADER} header rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API Key was not provided")
    if not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        logger.warning(f"Request to {request.url.path} with invalid {API_KEY_HEADER} rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API Key")
