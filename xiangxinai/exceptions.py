"""自定义异常类定义。"""
from typing import Any, Optional


class XiangxinAIError(Exception):
    """象信AI 客户端基础异常类。"""
    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data


class ConfigError(XiangxinAIError):
    """配置错误。"""


class AuthenticationError(XiangxinAIError):
    """认证失败（HTTP 401）。"""
    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class RateLimitError(XiangxinAIError):
    """超出速率限制（HTTP 429，重试耗尽）。"""
    def __init__(self, message: str = "Rate limit exceeded", **kwargs):
        super().__init__(message, **kwargs)


class ValidationError(XiangxinAIError):
    """输入参数无效，或服务端返回 422。"""
    def __init__(self, message: str = "Validation error", **kwargs):
        super().__init__(message, **kwargs)


class NetworkError(XiangxinAIError):
    """网络传输失败（重试耗尽）。"""
    def __init__(self, message: str = "Network error", **kwargs):
        super().__init__(message, **kwargs)


class ServerError(XiangxinAIError):
    """服务端错误（HTTP 5xx）。"""
    def __init__(self, message: str = "Server error", **kwargs):
        super().__init__(message, **kwargs)


__all__ = [
    "XiangxinAIError",
    "ConfigError",
    "AuthenticationError",
    "RateLimitError",
    "ValidationError",
    "NetworkError",
    "ServerError",
]
