"""Best-effort LLM prompt enhancement.

The enhancer asks a chat model to rewrite a composed prompt into a more
vivid 1-2 sentence description.  It never fails the request: any error, or a
missing API key, returns the original prompt unchanged.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from thumbcraft.core.config import ThumbcraftConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert prompt engineer for AI image generation. Your task is to enhance user prompts to create more detailed, visually appealing, and technically optimized prompts for image generation models.

Guidelines for enhancement:
- Add specific visual details (lighting, composition, style, colors)
- Include technical photography terms when appropriate
- Specify art styles or techniques if relevant
- Add atmosphere and mood descriptors
- Keep the core concept intact while making it more vivid
- Aim for 1-2 sentences maximum
- Focus on visual elements that will produce better images

Example:
Input: "a cat"
Output: "A majestic fluffy cat with bright emerald eyes, sitting gracefully in golden hour lighting, professional portrait photography, shallow depth of field, warm cinematic tones\""""


class PromptEnhancer:
    """Rewrites prompts with an OpenAI chat model."""

    def __init__(
        self,
        config: ThumbcraftConfig,
        client: AsyncOpenAI | None = None,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> None:
        self._config = config
        self._client = client
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._config.openai_api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._config.openai_api_key)
        return self._client

    async def enhance(self, prompt: str) -> str:
        """Return an enhanced prompt, or ``prompt`` itself on any failure."""
        if not self.is_configured:
            logger.info("Prompt enhancement skipped: OpenAI is not configured")
            return prompt

        try:
            response = await self.client.chat.completions.create(
                model=self._config.enhancer_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f'Please enhance this prompt for AI image generation: "{prompt}"',
                    },
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
            enhanced = (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.error("Error enhancing prompt: %s", e)
            return prompt

        if not enhanced:
            logger.warning("Prompt enhancement returned empty text, keeping original")
            return prompt

        logger.info("Original prompt: %r", prompt)
        logger.info("Enhanced prompt: %r", enhanced)
        return enhanced
