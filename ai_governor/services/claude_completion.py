"""
Claude Completion Client
Governed chat completion against the Anthropic Messages API.

Prompt construction and response parsing stay with the callers; this
client only sends (system, user) and returns the response text, reporting
token usage so the governor can charge the global and tenant budgets.
"""

from typing import Optional

import structlog

from anthropic import AsyncAnthropic

from ai_governor.services.request_governor import (
    GovernedRequest,
    OperationResult,
    RequestGovernor,
    build_cache_key,
)

logger = structlog.get_logger(__name__)

DEFAULT_OPERATION_NAME = "claude.complete"


class ClaudeCompletionClient:
    """
    Sends completions to Claude through a shared RequestGovernor.

    Usage:
        governor = RequestGovernor()
        claude = ClaudeCompletionClient(governor)

        text = await claude.complete(
            system_prompt,
            "Summarize the open tasks for this week",
            operation_name="tasks.weekly_summary",
            tenant_id="acme",
        )
    """

    def __init__(
        self,
        governor: RequestGovernor,
        client: Optional[AsyncAnthropic] = None,
    ):
        """
        Args:
            governor: Shared governor (one per process).
            client: Optional AsyncAnthropic client (created lazily if omitted).
        """
        self.governor = governor
        self._client = client
        self._owns_client = False
        self._api_key = None

    def _get_client(self, api_key: Optional[str]) -> AsyncAnthropic:
        """Lazy-initialize the Anthropic client, rebuilding it when the key is rotated."""
        if self._client is None or (self._owns_client and api_key != self._api_key):
            if not api_key:
                logger.warning("anthropic_api_key_missing")
            self._client = AsyncAnthropic(api_key=api_key)
            self._owns_client = True
            self._api_key = api_key
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        operation_name: str = DEFAULT_OPERATION_NAME,
        tenant_id: Optional[str] = None,
        cache_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> str:
        """
        Run one governed completion.

        Args:
            system_prompt: System instructions.
            user_message: User turn; also used as the logged prompt snippet.
            operation_name: Log/metrics grouping for the call.
            tenant_id: Tenant charged for the tokens (default tenant if None).
            cache_key: Explicit key; defaults to a hash of the prompt pair.
            model: Overrides the configured anthropic_model.
            max_tokens: Completion token cap.
            temperature: Sampling temperature.

        Returns:
            Response text (possibly served from cache on upstream trouble).

        Raises:
            GovernorError: When the call is rejected or fails with no cache.
        """
        # Model and key follow live config, like the governor's own knobs
        config = self.governor.config_provider.snapshot()
        model_name = model or config.anthropic_model
        client = self._get_client(config.anthropic_api_key)

        async def operation() -> OperationResult:
            message = await client.messages.create(
                model=model_name,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[
                    {
                        "role": "user",
                        "content": user_message
                    }
                ]
            )

            text = "".join(
                block.text for block in message.content
                if getattr(block, "type", None) == "text"
            )
            usage = {
                "input_tokens": message.usage.input_tokens,
                "output_tokens": message.usage.output_tokens,
            }
            return OperationResult(value=text, usage=usage)

        return await self.governor.execute(GovernedRequest(
            operation_name=operation_name,
            operation=operation,
            tenant_id=tenant_id,
            cache_key=cache_key or build_cache_key(
                DEFAULT_OPERATION_NAME, len(system_prompt), user_message
            ),
            prompt_snippet=user_message,
        ))
