from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from academy.models.user import normalize_address
from academy.services.platform import Platform

logger = logging.getLogger(__name__)


def get_platform(request: Request) -> Platform:
    return request.app.state.platform


def require_learner(
    x_wallet_address: Annotated[str | None, Header()] = None,
) -> str:
    """The connected wallet identifies the learner.

    Used as a FastAPI dependency on every learner-scoped endpoint.
    """
    learner = normalize_address(x_wallet_address or "")
    if not learner:
        logger.warning("Request without wallet address rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Wallet-Address header is required",
            headers={"WWW-Authenticate": "Wallet"},
        )
    return learner


PlatformDep = Annotated[Platform, Depends(get_platform)]
LearnerDep = Annotated[str, Depends(require_learner)]
