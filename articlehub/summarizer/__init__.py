"""LLM-backed article summarization.

This package provides:
- Vendor adapters (chat-completion and single-prompt styles)
- The summarization service that picks an adapter and bounds input/output
- The per-article workflow used by the HTTP layer
"""
