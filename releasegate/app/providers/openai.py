"""AI rewrite of generated release notes through the OpenAI chat API."""

from typing import Optional

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger
from releasegate.app.exceptions import (
    UpstreamRateLimitError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)

logger = get_logger(__name__)

SERVICE_NAME = "openai"

SYSTEM_PROMPT = (
    "You are a technical writer specializing in creating engaging release notes. "
    "Your task is to rewrite the provided release notes to be more engaging, "
    "user-friendly, and exciting while maintaining technical accuracy. \n\n"
    "Guidelines:\n"
    "- Keep the same structure and all technical details\n"
    "- Make the language more engaging and enthusiastic\n"
    "- Highlight the benefits to users\n"
    "- Keep commit links and technical references intact\n"
    "- Maintain professionalism while being friendly\n"
    "- If there are breaking changes, make them very clear\n"
    "- Preserve all markdown formatting and links"
)
TEMPERATURE = 0.7
MAX_TOKENS = 2000


class ReleaseNotesEnhancer:
    """Rewrites release-notes markdown with a fixed technical-writer prompt."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.base_url = base_url or settings.openai_base_url
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.upstream_timeout_seconds
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def enhance(self, markdown: str) -> str:
        """Return the rewritten markdown.

        Raises:
            UpstreamTimeoutError: the completion did not finish in time
            UpstreamRateLimitError: the AI service throttled the call
            UpstreamServiceError: any other failure, or an empty completion
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": markdown},
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
        except APITimeoutError as e:
            logger.warning(f"Completion request timed out: {e}")
            raise UpstreamTimeoutError(SERVICE_NAME) from e
        except RateLimitError as e:
            logger.warning(f"Completion request rate limited: {e}")
            raise UpstreamRateLimitError(
                SERVICE_NAME, "AI service rate limit exceeded. Try again later."
            ) from e
        except APIError as e:
            logger.error(f"Completion request failed: {type(e).__name__}: {e}")
            raise UpstreamServiceError(SERVICE_NAME) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamServiceError(SERVICE_NAME, "Failed to generate content")

        total_tokens = response.usage.total_tokens if response.usage else 0
        logger.debug(f"Completion finished: model={self.model}, tokens={total_tokens}")
        return content
