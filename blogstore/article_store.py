"""
Key-value style upsert interface over the blog_posts table.

The generation core only hands over a record dict; unknown keys are ignored so
the store schema and the record shape can evolve independently.
"""
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from .database import get_session_maker, session_scope
from .models import BlogPost, ReferenceArticle

logger = structlog.get_logger()

_WRITABLE_COLUMNS = frozenset(
    column.name for column in BlogPost.__table__.columns
    if column.name not in ("id", "created_at", "updated_at")
)


class ArticleStore:
    """
    Persistence for generated articles.

    Usage:
        store = ArticleStore()
        inserted = await store.upsert_article("solar-energy", record)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory

    def _sessions(self):
        return session_scope(self._session_factory or get_session_maker())

    async def upsert_article(self, key: str, record: Dict[str, Any]) -> bool:
        """
        Insert or update the article stored under `key`.

        Returns:
            True when a new row was inserted, False when an existing row was updated
        """
        if not key:
            raise ValueError("article key must not be empty")
        values = {k: v for k, v in record.items() if k in _WRITABLE_COLUMNS}
        ignored = sorted(set(record) - set(values))
        if ignored:
            logger.debug("article_record_fields_ignored", key=key, fields=ignored)

        async with self._sessions() as db:
            existing = await db.get(BlogPost, key)
            if existing is None:
                db.add(BlogPost(id=key, **values))
                inserted = True
            else:
                for name, value in values.items():
                    setattr(existing, name, value)
                inserted = False

        logger.info("article_upserted", key=key, inserted=inserted)
        return inserted

    async def get_article(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._sessions() as db:
            post = await db.get(BlogPost, key)
            return post.to_dict() if post else None

    async def list_pending_enrichment(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Articles with a full article and reference material but no long version yet.

        Reference material is JSON, so the non-empty check happens in Python.
        """
        async with self._sessions() as db:
            query = (
                select(BlogPost)
                .where(BlogPost.article_long.is_(None))
                .where(BlogPost.full_article.is_not(None))
                .order_by(BlogPost.created_at)
            )
            result = await db.execute(query)
            posts = [
                post.to_dict()
                for post in result.scalars().all()
                if post.full_article and post.reference_material
            ]

        if limit is not None:
            posts = posts[:limit]
        logger.info("pending_enrichment_loaded", count=len(posts))
        return posts

    async def set_long_article(self, key: str, text: str) -> None:
        async with self._sessions() as db:
            post = await db.get(BlogPost, key)
            if post is None:
                raise KeyError(f"No article stored under key: {key}")
            post.article_long = text

    async def add_reference_material(self, entries: List[str]) -> None:
        async with self._sessions() as db:
            db.add(ReferenceArticle(urls=list(entries)))

    async def get_reference_material(self) -> List[str]:
        """All stored reference entries, flattened in insertion order."""
        async with self._sessions() as db:
            result = await db.execute(select(ReferenceArticle).order_by(ReferenceArticle.id))
            material: List[str] = []
            for row in result.scalars().all():
                urls = row.urls or []
                if isinstance(urls, str):
                    urls = [urls]
                material.extend(str(u) for u in urls if u)
        return material
