"""
api/errors.py -- Helpers for raising structured HTTP errors from route handlers.

Every handler error is an HTTPException whose detail is {"code", "message"}.
api/main.py's HTTPException handler lifts that dict into the ErrorResponse
envelope, so the code strings here are the stable, client-visible contract.
"""

from fastapi import HTTPException


def api_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def not_found(what: str) -> HTTPException:
    return api_error(404, "not_found", f"{what} not found.")


def forbidden(message: str = "Access denied. Insufficient permissions.") -> HTTPException:
    return api_error(403, "forbidden", message)


def bad_request(code: str, message: str) -> HTTPException:
    return api_error(400, code, message)
