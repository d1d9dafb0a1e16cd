"""ArticleHub: articles with owner/admin editing and AI-generated summaries."""

__version__ = "1.0.0"
