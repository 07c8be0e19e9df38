"""
Result records: the articles produced by successful jobs.
"""

import logging
from datetime import datetime, timezone
from typing import List

from shared.errors import PersistenceError

logger = logging.getLogger(__name__)

INITIAL_STATUS = "inactive"


class ArticleStore:
    """Creates article rows; publishing happens elsewhere."""

    def __init__(self, client, table: str = "articles"):
        self.client = client
        self.table_name = table

    async def create(
        self,
        user_id: str,
        title: str,
        content: str,
        category: str,
        sources: List[str],
        author_name: str
    ) -> str:
        """
        Create an unpublished article.

        Returns:
            The new article's id

        Raises:
            PersistenceError: If the row could not be written
        """
        article = {
            "user_id": user_id,
            "title": title,
            "content": content,
            "category": category,
            "status": INITIAL_STATUS,
            "author_name": author_name,
            "sources": list(sources),
            "featured_image": "",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        logger.info(f"Creating article for user {user_id}: {len(content)} characters")

        try:
            result = self.client.table(self.table_name).insert(article).execute()
        except Exception as e:
            logger.error(f"Article insert error: {str(e)}")
            raise PersistenceError("Failed to create article document")

        if not result.data:
            raise PersistenceError("Failed to create article document")

        article_id = result.data[0]["id"]
        logger.info(f"Article created with ID: {article_id}")
        return article_id

    async def delete(self, article_id: str) -> None:
        """Remove an article that was written for a job that then failed."""
        self.client.table(self.table_name).delete().eq("id", article_id).execute()
        logger.info(f"Article deleted: {article_id}")
