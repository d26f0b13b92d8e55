from .api_client import ApiClient, ApiError
from .optimistic import LikeableItem, LikeController
from .session_keeper import SessionKeeper
