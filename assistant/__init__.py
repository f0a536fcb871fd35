"""
Seed Assistant Context Service

Resolves Box attachments for the AI assistant, extracts their text under
strict size/time budgets and assembles the knowledge base for the prompt.

Usage:
    from assistant.common import load_config
    from assistant.pipeline import build_pipeline
    from assistant.retriever import select_top_relevant_files, RetrievalOrchestrator
"""

__version__ = "0.1.0"
