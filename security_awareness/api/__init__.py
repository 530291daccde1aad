"""REST 路由与实时事件通道"""
