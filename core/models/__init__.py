# 导入用户模型
from .user import User
# 导入角色/故事模型
from .character import Character
from .story import Story
# 导入会话模型
from .conversation import Conversation
# 导入社区模型
from .community_post import CommunityPost, PostComment, PostLike
from .follower import Follower
# 导入基础模型
from .base import *
