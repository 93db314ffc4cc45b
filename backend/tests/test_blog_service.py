"""
Blog like toggling and ranking tests.
"""

import pytest

from reviewhub.services import BlogService


@pytest.fixture
def blog_service(db_config, cache_manager):
    return BlogService(db_config, cache_manager)


class TestLikes:

    @pytest.mark.asyncio
    async def test_like_toggle(self, blog_service, seed_blog):
        seed_blog()

        assert await blog_service.like_blog(1, 1) is True
        assert await blog_service.is_liked(1, 1)
        assert (await blog_service.query_blog_by_id(1)).liked == 1

        assert await blog_service.like_blog(1, 1) is False
        assert not await blog_service.is_liked(1, 1)
        assert (await blog_service.query_blog_by_id(1)).liked == 0

    @pytest.mark.asyncio
    async def test_like_missing_blog(self, blog_service, fake_valkey):
        assert await blog_service.like_blog(404, 1) is False
        assert "blog:liked:404" not in fake_valkey.zsets

    @pytest.mark.asyncio
    async def test_top_likers_in_like_order(self, blog_service, seed_blog, fake_valkey):
        seed_blog()
        for user_id in (3, 1, 6, 2, 5, 4):
            await blog_service.like_blog(1, user_id)
        # Make the order independent of clock resolution
        for rank, user_id in enumerate((3, 1, 6, 2, 5, 4)):
            fake_valkey.zsets["blog:liked:1"][str(user_id)] = 1000.0 + rank

        likers = await blog_service.query_blog_likes(1)

        assert [user.id for user in likers] == [3, 1, 6, 2, 5]
        assert likers[0].nick_name == "user3"

    @pytest.mark.asyncio
    async def test_no_likes(self, blog_service, seed_blog):
        seed_blog()
        assert await blog_service.query_blog_likes(1) == []
        assert await blog_service.query_blog_likes(1, top=0) == []


class TestBlogQuery:

    @pytest.mark.asyncio
    async def test_blog_with_author_and_like_flag(self, blog_service, seed_blog):
        seed_blog()
        await blog_service.like_blog(1, 2)

        blog = await blog_service.query_blog_by_id(1, user_id=2)
        assert blog.name == "author"
        assert blog.icon == "/a.png"
        assert blog.is_like is True

        assert (await blog_service.query_blog_by_id(1, user_id=3)).is_like is False

    @pytest.mark.asyncio
    async def test_missing_blog(self, blog_service):
        assert await blog_service.query_blog_by_id(404) is None

    @pytest.mark.asyncio
    async def test_like_flag_degrades_on_outage(self, blog_service, seed_blog, fake_valkey):
        seed_blog()
        fake_valkey.down = True

        blog = await blog_service.query_blog_by_id(1, user_id=2)
        assert blog.is_like is False
        assert blog.title == "Great tea"
