"""业务异常：服务层抛出，路由层统一转换为 HTTP 响应。"""


class AppError(Exception):
    status_code = 400
    code = 40000
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(AppError):
    status_code = 400
    code = 40001
    default_message = "Invalid request"


class Unauthorized(AppError):
    status_code = 403
    code = 40301
    default_message = "Unauthorized"


class PremiumRequired(AppError):
    status_code = 403
    code = 40302
    default_message = "This feature is only available for premium users"


class NotFound(AppError):
    status_code = 404
    code = 40400
    default_message = "Not found"


class UserNotFound(NotFound):
    code = 40401
    default_message = "User not found"


class CharacterNotFound(NotFound):
    code = 40402
    default_message = "Character not found"


class ConversationNotFound(NotFound):
    code = 40403
    default_message = "Conversation not found"


class StoryNotFound(NotFound):
    code = 40404
    default_message = "Story not found"


class PostNotFound(NotFound):
    code = 40405
    default_message = "Post not found"


class QuotaConflict(AppError):
    status_code = 409
    code = 40901
    default_message = "Usage record is being updated concurrently, please retry"


class QuotaExceeded(AppError):
    status_code = 429
    code = 42901

    def __init__(self, limit: int):
        self.limit = int(limit)
        super().__init__(f"Daily limit of {self.limit} chats exceeded")


class UpstreamGatewayFailure(AppError):
    status_code = 502
    code = 50201
    default_message = "AI generation failed"


class RemoteToggleFailure(Exception):
    """客户端远程切换失败（本地已回滚，仅用于上报）。"""

    def __init__(self, item_id: str, cause: BaseException = None):
        self.item_id = item_id
        self.cause = cause
        super().__init__(f"toggle failed for {item_id}: {cause}")
