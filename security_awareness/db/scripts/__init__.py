"""数据库维护脚本"""
