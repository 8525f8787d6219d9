"""
业务异常到 HTTP 状态码的映射
"""
from fastapi import HTTPException, status
from app.services.errors import NotFoundError, InvalidOperationError


def http_error(exc: ValueError) -> HTTPException:
    """NotFound -> 404，InvalidOperation -> 409，其余 ValueError -> 400"""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidOperationError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
