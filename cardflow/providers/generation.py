# cardflow/providers/generation.py
"""
Text and image generation.

Live mode (CARDFLOW_LIVE_PROVIDERS=1) calls OpenAI; otherwise a deterministic
mock answers so the whole saga can run locally without keys.
"""
from __future__ import annotations

import base64
import json
import logging
import os
from typing import Dict, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    BadRequestError,
    RateLimitError,
)

from cardflow.orchestrator.temporal.common.errors import (
    ContentRejectedError,
    FatalError,
    GenerationError,
)

logger = logging.getLogger("cardflow.generation")

# 1x1 transparent PNG used by the mock image generator
_MOCK_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

SPLIT_SYSTEM_PROMPT = (
    "You help design birthday cards. Given a user's description, produce two prompts: "
    "one for writing the card's message and one for generating the card's image. "
    'Answer with a JSON object: {"text_prompt": "...", "image_prompt": "..."}.'
)

MESSAGE_PROMPT_TEMPLATE = (
    "Create a heartfelt birthday message for a birthday card with this theme: {theme}\n\n"
    "Return ONLY the final birthday message text that will appear on the card. "
    'Do not include labels like "Short variant" or "Longer variant". '
    "Do not include multiple options or sign-off variations. "
    "Just return one complete, ready-to-use birthday message."
)

IMAGE_PROMPT_TEMPLATE = "Generate a birthday card image based on this description: {description}"


def live_mode() -> bool:
    return os.getenv("CARDFLOW_LIVE_PROVIDERS", "0") == "1"


def _client() -> AsyncOpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise FatalError("OPENAI_API_KEY is not set; cannot use live generation")
    return AsyncOpenAI(api_key=api_key)


def _translate(exc: Exception, what: str) -> Exception:
    """Map OpenAI SDK errors onto the cardflow taxonomy."""
    if isinstance(exc, BadRequestError):
        return ContentRejectedError(f"{what} rejected by provider: {exc.message}")
    if isinstance(exc, (RateLimitError, APITimeoutError, APIConnectionError)):
        return GenerationError(f"{what} failed transiently: {exc}")
    if isinstance(exc, APIStatusError):
        return GenerationError(f"{what} failed with status {exc.status_code}: {exc.message}")
    return GenerationError(f"{what} failed: {exc}")


# ---------------------------------------------------------------------------
# Prompt splitting
# ---------------------------------------------------------------------------

def parse_split_response(raw: Optional[str]) -> Dict[str, str]:
    """Parse the splitter's JSON answer; malformed output is a (retryable) GenerationError."""
    try:
        data = json.loads(raw or "")
    except json.JSONDecodeError as e:
        raise GenerationError(f"prompt splitter returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError("prompt splitter returned a non-object")

    text_prompt = data.get("text_prompt") or data.get("textPrompt")
    image_prompt = data.get("image_prompt") or data.get("imagePrompt")
    if not (isinstance(text_prompt, str) and text_prompt.strip()):
        raise GenerationError("prompt splitter returned no text_prompt")
    if not (isinstance(image_prompt, str) and image_prompt.strip()):
        raise GenerationError("prompt splitter returned no image_prompt")
    return {"text_prompt": text_prompt.strip(), "image_prompt": image_prompt.strip()}


async def split_prompt(prompt: str) -> Dict[str, str]:
    if not live_mode():
        return {
            "text_prompt": f"A warm birthday message inspired by: {prompt}",
            "image_prompt": f"A festive illustration of {prompt}",
        }

    client = _client()
    try:
        resp = await client.chat.completions.create(
            model=os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini"),
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SPLIT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.4,
        )
    except Exception as e:  # noqa: BLE001
        raise _translate(e, "prompt split") from e

    logger.info("Prompt split via %s", resp.model)
    return parse_split_response(resp.choices[0].message.content)


# ---------------------------------------------------------------------------
# GenerateText / GenerateImage
# ---------------------------------------------------------------------------

async def generate_text(theme: str) -> str:
    if not live_mode():
        return (
            "Happy Birthday! Wishing you a year as bright as "
            f"{theme.strip() or 'a summer morning'}, full of laughter and good friends."
        )

    client = _client()
    try:
        resp = await client.chat.completions.create(
            model=os.getenv("OPENAI_TEXT_MODEL", "gpt-4o-mini"),
            messages=[{"role": "user", "content": MESSAGE_PROMPT_TEMPLATE.format(theme=theme)}],
            temperature=0.8,
            max_tokens=300,
        )
    except Exception as e:  # noqa: BLE001
        raise _translate(e, "message generation") from e

    text = (resp.choices[0].message.content or "").strip()
    if not text:
        raise GenerationError("message generation returned empty text")
    return text


async def generate_image(description: str) -> str:
    """Return the image as a data URI (data:<mime>;base64,<payload>)."""
    if not live_mode():
        return "data:image/png;base64," + base64.b64encode(_MOCK_PNG).decode("ascii")

    client = _client()
    try:
        resp = await client.images.generate(
            model=os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3"),
            prompt=IMAGE_PROMPT_TEMPLATE.format(description=description),
            size=os.getenv("OPENAI_IMAGE_SIZE", "1024x1024"),
            response_format="b64_json",
            n=1,
        )
    except Exception as e:  # noqa: BLE001
        raise _translate(e, "image generation") from e

    logger.info("🎨 Image generated | size=%s", os.getenv("OPENAI_IMAGE_SIZE", "1024x1024"))
    image = resp.data[0] if resp.data else None
    if image is None or not image.b64_json:
        raise GenerationError("Failed to generate image")
    return f"data:image/png;base64,{image.b64_json}"
