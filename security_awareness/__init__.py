"""DynamicBiz 安全意识培训平台后端"""

__version__ = "1.0.0"
