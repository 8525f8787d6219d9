"""
业务异常
均继承 ValueError，路由层按类型映射为 HTTP 状态码
"""


class ServiceError(ValueError):
    """业务操作失败"""


class NotFoundError(ServiceError):
    """引用的对象不存在"""


class InvalidOperationError(ServiceError):
    """违反业务约束，需调用方修正后重试"""
