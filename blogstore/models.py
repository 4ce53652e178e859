"""
Database models for generated articles.

- blog_posts: one row per generated article, keyed by a caller-supplied id
- reference_articles: reference material used for style analysis and enrichment

JSON columns are JSONB on PostgreSQL and plain JSON elsewhere.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now():
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class BlogPost(Base):
    """A generated article plus the long-form enriched version, once written."""
    __tablename__ = "blog_posts"

    id = Column(String(255), primary_key=True)
    slug = Column(String(500), index=True)
    topic = Column(Text)

    headline = Column(Text, nullable=False)
    primary_keywords = Column(JSONType, default=list)
    secondary_keywords = Column(JSONType, default=list)
    outline = Column(JSONType, default=list)

    introduction = Column(Text)
    sections = Column(JSONType, default=list)
    body_copy = Column(Text)
    assembled_article = Column(Text)
    full_article = Column(Text)

    # Written later by the batch enrichment
    article_long = Column(Text)

    image_urls = Column(JSONType, default=list)
    alt_image_texts = Column(JSONType, default=list)
    reference_material = Column(JSONType, default=list)

    degradations = Column(JSONType, default=list)
    usage = Column(JSONType)
    published = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class ReferenceArticle(Base):
    """Reference material entries (URLs or text) shared across runs."""
    __tablename__ = "reference_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    urls = Column(JSONType, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)
