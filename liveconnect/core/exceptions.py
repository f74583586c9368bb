"""家庭组领域异常

注册表只抛这些异常，不依赖 HTTP；
由 main.py 的异常处理器统一映射成状态码，WebSocket 侧只记日志。
"""


class FamilyError(Exception):
    """所有家庭组错误的基类"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(FamilyError):
    """缺少必填字段或字段为空（用户可修正）"""

    status_code = 400


class NotFound(FamilyError):
    """家庭组或成员不存在"""

    status_code = 404


class CapacityExceeded(FamilyError):
    """家庭组人数或家庭组总数达到上限"""

    status_code = 409
