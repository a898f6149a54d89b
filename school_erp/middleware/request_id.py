from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
import uuid

from school_erp.core.logging import logger


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id, echoed back as X-Request-ID and logged with the access line"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        request.state.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "request_id": request.state.request_id,
                "school_code": getattr(request.state, "school_code", None),
                "user_id": getattr(request.state, "user_id", None),
            },
        )
        return response
