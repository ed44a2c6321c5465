"""
履约流程异常定义

下游失败（渲染、上传、写表、发信）统一继承 FulfillmentError，
在流程层被捕获后写入订单行的 error 列。
"""


class FulfillmentError(Exception):
    """履约流程异常基类"""


class ConfigurationError(FulfillmentError):
    """缺少必需的环境变量"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing {name}")


class SignatureError(FulfillmentError):
    """Webhook 签名缺失或校验失败"""


class RenderError(FulfillmentError):
    """图片渲染失败（本地字体缺失、远程渲染服务失败或超时）"""


class UploadError(FulfillmentError):
    """Blob 存储上传失败"""


class StoreError(FulfillmentError):
    """订单状态表读写失败"""


class EmailError(FulfillmentError):
    """邮件发送失败"""
