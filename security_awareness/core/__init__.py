"""DynamicBiz 安全意识平台核心模块

包含应用程序的核心功能：
- 配置管理
- 日志系统
- 密码与令牌工具
- 异常处理
"""

from .config import settings
from .logging import get_logger, performance_logger, security_logger, security_monitor
from .exceptions import SecurityAwarenessException

__all__ = [
    'settings',
    'get_logger',
    'performance_logger',
    'security_logger',
    'security_monitor',
    'SecurityAwarenessException'
]
