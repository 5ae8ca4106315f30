from .base import DefineMiddleware, Middleware
from .exceptions import ExceptionMiddleware
from .urlencoded import UrlencodedMiddleware

__all__ = ["DefineMiddleware", "ExceptionMiddleware", "Middleware", "UrlencodedMiddleware"]
