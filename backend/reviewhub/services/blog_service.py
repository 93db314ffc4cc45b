"""
Blog likes backed by a per-blog sorted set.

``blog:liked:<blog_id>`` holds the ids of users who liked the blog,
scored by like time in epoch milliseconds, so the earliest likers come
first in ZRANGE order. The store keeps the like counter.
"""

import logging
import time
from typing import List, Optional

from ..cache.config import CacheUnavailableError
from ..cache.manager import CacheManager
from ..cache.utils import key_manager
from ..database.config import DatabaseConfig
from ..database.repositories import BlogRepository, UserRepository
from ..models.blog import BlogModel, UserSummaryModel

logger = logging.getLogger(__name__)


class BlogService:
    """Like toggling and like rankings."""

    def __init__(self, db_config: DatabaseConfig, cache_manager: CacheManager):
        self.db = db_config
        self.cache = cache_manager

    async def is_liked(self, blog_id: int, user_id: int) -> bool:
        score = await self.cache.zscore(key_manager.blog_liked_key(blog_id), str(user_id))
        return score is not None

    async def like_blog(self, blog_id: int, user_id: int) -> bool:
        """
        Toggle the user's like on a blog.

        Returns:
            True if the blog is now liked by the user

        Raises:
            CacheUnavailableError: the like set could not be read or written
            StoreUnavailableError: the like counter could not be updated
        """
        key = key_manager.blog_liked_key(blog_id)
        member = str(user_id)

        if not await self.is_liked(blog_id, user_id):
            with self.db.get_session_context() as session:
                updated = BlogRepository.increment_liked(session, blog_id)
            if not updated:
                logger.warning(f"Like ignored, blog {blog_id} does not exist")
                return False
            await self.cache.zadd(key, member, time.time() * 1000)
            logger.debug(f"User {user_id} liked blog {blog_id}")
            return True

        with self.db.get_session_context() as session:
            updated = BlogRepository.decrement_liked(session, blog_id)
        if updated:
            await self.cache.zrem(key, member)
            logger.debug(f"User {user_id} unliked blog {blog_id}")
            return False

        logger.warning(f"Unlike ignored for blog {blog_id}, counter not decremented")
        return True

    async def query_blog_likes(self, blog_id: int, top: int = 5) -> List[UserSummaryModel]:
        """The first ``top`` users who liked the blog, earliest first."""
        if top < 1:
            return []

        members = await self.cache.zrange(key_manager.blog_liked_key(blog_id), 0, top - 1)
        user_ids = [int(member) for member in members]
        if not user_ids:
            return []

        with self.db.get_session_context() as session:
            return UserRepository.list_by_ids(session, user_ids)

    async def query_blog_by_id(self, blog_id: int, user_id: Optional[int] = None) -> Optional[BlogModel]:
        """
        Blog with its author's name and icon, plus whether ``user_id`` liked it.
        """
        with self.db.get_session_context() as session:
            blog = BlogRepository.get_by_id(session, blog_id)
            if blog is None:
                return None
            author = UserRepository.get_by_id(session, blog.user_id)

        if author is not None:
            blog.name = author.nick_name
            blog.icon = author.icon

        if user_id is not None:
            try:
                blog.is_like = await self.is_liked(blog_id, user_id)
            except CacheUnavailableError as e:
                logger.warning(f"Like state unavailable for blog {blog_id}: {e}")

        return blog
