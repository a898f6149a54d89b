from .auth import AuthRedirectMiddleware
from .request_id import RequestIDMiddleware

__all__ = ["AuthRedirectMiddleware", "RequestIDMiddleware"]
