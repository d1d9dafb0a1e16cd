"""Who may do what to an article."""

from __future__ import annotations

from .models import Article, User


def is_owner(identity: User, article: Article) -> bool:
    return identity.id == article.created_by


def can_summarize(identity: User, article: Article) -> bool:
    return identity.is_admin or is_owner(identity, article)


# Editing shares the summarization predicate.
can_edit = can_summarize


def can_delete(identity: User) -> bool:
    return identity.is_admin
