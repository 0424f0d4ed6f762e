from __future__ import annotations

import logging

from fastapi import HTTPException

from slotbook.application.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    SlotbookError,
    StateTransitionError,
    TokenError,
    ValidationError,
)


logger = logging.getLogger(__name__)


def to_http_error(error: SlotbookError) -> HTTPException:
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail={"message": str(error), "conflict": error.to_dict()})
    if isinstance(error, StateTransitionError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, TokenError):
        # never echo why a token was rejected
        logger.info("Token rejected", extra={"reason": str(error)})
        return HTTPException(status_code=400, detail="invalid or expired token")
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, PersistenceError):
        logger.error("Persistence failure", extra={"error": str(error)})
        return HTTPException(status_code=500, detail="storage failure")
    logger.error("Unhandled domain error", extra={"error": str(error)})
    return HTTPException(status_code=500, detail="internal error")
