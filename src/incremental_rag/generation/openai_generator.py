"""
OpenAI-compatible answer generator.

Sends the retrieved context, the conversation history and the question to a
chat completions endpoint and returns the model's answer.
"""

import logging

import openai

from incremental_rag.core.cancellation import CancellationToken, ensure_token
from incremental_rag.core.interfaces import IAnswerGenerator
from incremental_rag.core.resilience import ResiliencePolicy, is_transient_error
from incremental_rag.models import ChatMessage, ChatRole, GenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using only the numbered context passages below. "
    "If the passages do not contain the answer, say that you don't know.\n\n"
    "Context:\n{context}"
)


def build_messages(question: str, context: list[str], history: list[ChatMessage]) -> list[dict[str, str]]:
    """
    Assemble the chat messages for one question.

    The system prompt carries the context passages, most relevant first; the
    conversation history follows, then the question.
    """
    passages = "\n\n".join(f"[{number}] {passage}" for number, passage in enumerate(context, start=1))
    messages = [{"role": ChatRole.SYSTEM.value, "content": SYSTEM_PROMPT.format(context=passages or "(none)")}]
    messages.extend({"role": ChatRole(message.role).value, "content": message.content} for message in history)
    messages.append({"role": ChatRole.USER.value, "content": question})
    return messages


class OpenAIAnswerGenerator(IAnswerGenerator):
    """Answer generator backed by an OpenAI-compatible chat completions API."""

    def __init__(self, config, client: openai.AsyncOpenAI | None = None, policy: ResiliencePolicy | None = None):
        self.config = config
        self.policy = policy or ResiliencePolicy(config)
        self._model = config.openai_chat_model

        if client is None:
            client_kwargs: dict = {"timeout": config.openai_timeout_seconds, "max_retries": 0}
            if config.openai_api_key:
                client_kwargs["api_key"] = config.openai_api_key.get_secret_value()
            if config.openai_base_url:
                client_kwargs["base_url"] = config.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client

    async def generate(
        self,
        question: str,
        context: list[str],
        history: list[ChatMessage],
        cancel: CancellationToken | None = None,
    ) -> str:
        ensure_token(cancel).raise_if_cancelled("answer generation")

        messages = build_messages(question, context, history)
        return await self.policy.run("chat completion", self._complete, messages)

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self.config.answer_temperature,
                max_tokens=self.config.answer_max_tokens,
            )
        except openai.APIError as e:
            transient = is_transient_error(e)
            logger.error("Chat completion failed (%s): %s", "transient" if transient else "permanent", e)
            raise GenerationError(
                f"Chat completion failed: {e}",
                model_name=self._model,
                underlying_error=e,
                transient=transient,
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Chat completion returned an empty answer", model_name=self._model)

        logger.debug("Generated answer with %s (%d characters)", self._model, len(content))
        return content

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self._client.close()
