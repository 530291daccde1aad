"""日志系统模块"""

import logging
import sys
from pathlib import Path
from typing import Optional


class ColoredFormatter(logging.Formatter):
    """带颜色的日志格式化器"""

    COLORS = {
        'DEBUG': '\033[36m',     # 青色
        'INFO': '\033[32m',      # 绿色
        'WARNING': '\033[33m',   # 黄色
        'ERROR': '\033[31m',     # 红色
        'CRITICAL': '\033[35m',  # 紫色
    }
    RESET = '\033[0m'

    def format(self, record):
        # 复制记录，避免文件处理器收到带颜色的级别名
        colored = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(colored.levelname, self.RESET)
        colored.levelname = f"{log_color}{colored.levelname}{self.RESET}"
        return super().format(colored)


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """设置日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别
        log_file: 日志文件路径
        format_string: 日志格式字符串

    Returns:
        配置好的日志记录器
    """
    logger = logging.getLogger(name)

    # 避免重复添加处理器
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(ColoredFormatter(format_string))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(logging.Formatter(format_string))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """获取日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别

    Returns:
        日志记录器实例
    """
    return setup_logger(name, level)


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """按配置调整专用日志记录器的级别与文件输出

    Args:
        level: 日志级别，默认读取 LOG_LEVEL
        log_file: 日志文件路径，默认读取 LOG_FILE
    """
    from .config import settings

    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    for logger in (app_logger, performance_logger, request_logger):
        logger.setLevel(getattr(logging, level))
        for handler in logger.handlers:
            handler.setLevel(getattr(logging, level))
        if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            logger.addHandler(file_handler)


# 创建专用的日志记录器
performance_logger = setup_logger(
    "performance",
    level="INFO",
    format_string="%(asctime)s - PERF - %(message)s"
)

security_logger = setup_logger(
    "security",
    level="INFO",
    format_string="%(asctime)s - SEC - %(levelname)s - %(message)s"
)

# 请求日志：'{method} {path} - {ip}'
request_logger = setup_logger(
    "request",
    level="INFO",
    format_string="%(asctime)s - %(message)s"
)

# 应用主日志记录器
app_logger = setup_logger(
    "security_awareness",
    level="INFO"
)


class SecurityMonitor:
    """安全监控器"""

    def __init__(self, logger: logging.Logger = security_logger):
        self.logger = logger

    def log_auth_attempt(self, username: str, success: bool, ip: str = "unknown"):
        """记录认证尝试"""
        status = "success" if success else "failure"
        level = logging.INFO if success else logging.WARNING
        self.logger.log(
            level,
            f"Authentication attempt - user: {username}, status: {status}, ip: {ip}",
            extra={"username": username, "success": success, "client_ip": ip, "event_type": "auth_attempt"}
        )

    def log_security_violation(self, violation_type: str, details: str, ip: str = "unknown"):
        """记录安全违规"""
        self.logger.warning(
            f"Security violation - type: {violation_type}, ip: {ip}, details: {details}",
            extra={"violation_type": violation_type, "client_ip": ip, "event_type": "security_violation"}
        )


# 创建监控器实例
security_monitor = SecurityMonitor()
