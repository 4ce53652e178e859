"""
Persistence for generated articles.
"""
from .article_store import ArticleStore
from .database import get_db_session, init_db
from .models import BlogPost, ReferenceArticle

__all__ = [
    "ArticleStore",
    "get_db_session",
    "init_db",
    "BlogPost",
    "ReferenceArticle",
]
