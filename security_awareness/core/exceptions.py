"""自定义异常模块"""

from typing import Optional, Dict, Any


class SecurityAwarenessException(Exception):
    """应用基础异常类"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class AuthenticationError(SecurityAwarenessException):
    """认证异常"""

    status_code = 401

    def __init__(self, message: str, username: Optional[str] = None, status_code: Optional[int] = None):
        details = {}
        if username:
            details["username"] = username

        super().__init__(message, "AUTHENTICATION_ERROR", details, status_code)


class AuthorizationError(SecurityAwarenessException):
    """授权异常"""

    status_code = 403

    def __init__(self, message: str, user_id: Optional[int] = None, required_permission: Optional[str] = None):
        details = {}
        if user_id:
            details["user_id"] = user_id
        if required_permission:
            details["required_permission"] = required_permission

        super().__init__(message, "AUTHORIZATION_ERROR", details)


class ValidationError(SecurityAwarenessException):
    """验证异常"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundError(SecurityAwarenessException):
    """资源未找到异常"""

    status_code = 404

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = str(resource_id)

        super().__init__(message, "RESOURCE_NOT_FOUND_ERROR", details)


class ConflictError(SecurityAwarenessException):
    """资源冲突异常"""

    status_code = 409

    def __init__(self, message: str, resource_type: Optional[str] = None):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type

        super().__init__(message, "CONFLICT_ERROR", details)


class DatabaseError(SecurityAwarenessException):
    """数据库异常"""

    def __init__(self, message: str, operation: Optional[str] = None, table: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table

        super().__init__(message, "DATABASE_ERROR", details)


class ConfigurationError(SecurityAwarenessException):
    """配置异常"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, "CONFIGURATION_ERROR", details)
