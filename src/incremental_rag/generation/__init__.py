"""Answer generation from retrieved context."""

from incremental_rag.generation.openai_generator import OpenAIAnswerGenerator, build_messages

__all__ = ["OpenAIAnswerGenerator", "build_messages"]
