"""
MyName 订单履约服务
"""
__version__ = "0.1.0"
