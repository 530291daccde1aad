"""请求体模式"""
