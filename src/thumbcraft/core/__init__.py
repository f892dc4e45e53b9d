"""Core functionality for thumbnail generation.

This module provides the core components of Thumbcraft:

- **Prompt Composer**: Deterministic structured-field prompt composition
- **PromptEnhancer**: Best-effort LLM rewrite of composed prompts
- **GenerationOrchestrator**: Concurrent multi-provider image generation
- **Providers**: Gemini and OpenAI image providers behind one interface
- **ThumbcraftConfig**: Configuration management using Pydantic Settings

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with THUMBCRAFT_ in .env files

2. **Composition Layer** (prompt_composer.py, enhancer.py):
   - Structured fields to one instruction string
   - Optional LLM rewrite that degrades to a no-op

3. **Provider Layer** (providers/):
   - Unified interface over streaming and single-response services
   - Registry pattern for provider discovery by name

4. **Orchestration Layer** (orchestrator.py, retry.py):
   - Slot fan-out, fallback chains, rate-limit retry

Usage Example
-------------
    from thumbcraft.core import GenerationOrchestrator, compose, config
    from thumbcraft.core.models import GenerationMode, StructuredFields

    prompt = compose(StructuredFields(category="gaming"), GenerationMode.TEXT_TO_IMAGE)
    orchestrator = GenerationOrchestrator.from_config(config)
    buffers = await orchestrator.generate(prompt, count=4)
"""

from thumbcraft.core.config import ThumbcraftConfig, config
from thumbcraft.core.enhancer import PromptEnhancer
from thumbcraft.core.errors import ProviderConfigurationError, ThumbcraftError
from thumbcraft.core.orchestrator import GenerationOrchestrator
from thumbcraft.core.prompt_composer import compose
from thumbcraft.core.providers import ProviderBase, provider_registry

__all__ = [
    "GenerationOrchestrator",
    "PromptEnhancer",
    "ProviderBase",
    "ProviderConfigurationError",
    "ThumbcraftConfig",
    "ThumbcraftError",
    "compose",
    "config",
    "provider_registry",
]
