import json
import logging
import re

from openai import AsyncOpenAI

from pokemaker.agent.artifacts import GeneratedImage
from pokemaker.agent.errors import ArtworkError
from pokemaker.agent.prompts.vision import VISION_HINT_TEMPLATE, VISION_USER_PROMPT
from pokemaker.core.config import settings

logger = logging.getLogger(__name__)

VISUAL_DESCRIPTION_MAX_CHARS = 1500
IMAGE_PROMPT_MIN_CHARS = 10
IMAGE_PROMPT_MAX_CHARS = 4000


def _extract_fenced_block(text: str) -> str | None:
    blocks = re.findall(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL | re.IGNORECASE)
    return blocks[0].strip() if blocks else None


def _extract_balanced_json_span(text: str) -> str | None:
    """Best-effort extraction of the first balanced top-level JSON object."""
    if not text:
        return None

    start_idx = text.find("{")
    if start_idx == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start_idx, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]
    return None


def _structured_text_candidates(raw_text: str) -> list[str]:
    text = (raw_text or "").strip()
    if not text:
        return []

    candidates: list[str] = []
    fenced = _extract_fenced_block(text)
    if fenced:
        candidates.append(fenced)

    candidates.append(text)

    balanced = _extract_balanced_json_span(text)
    if balanced:
        candidates.append(balanced)

    # Deduplicate while preserving order.
    seen = set()
    unique: list[str] = []
    for candidate in candidates:
        c = candidate.strip()
        if not c or c in seen:
            continue
        seen.add(c)
        unique.append(c)
    return unique


def parse_visual_description(raw_text: str) -> str:
    """
    Pull ``visualDescription`` out of a vision response.

    Models sometimes wrap the JSON in prose or fences, or skip the JSON
    entirely; in the last case the whole reply is used as the description.
    """
    for candidate in _structured_text_candidates(raw_text):
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        if not isinstance(parsed, dict):
            continue
        description = parsed.get("visualDescription") or parsed.get("visual_description")
        if isinstance(description, str) and description.strip():
            return description.strip()

    text = (raw_text or "").strip()
    if text.startswith("{") or not text:
        raise ValueError("Invalid response structure from vision model - missing visualDescription")
    logger.warning("Vision response was not JSON; using the raw text as the description.")
    return text


def truncate_description(description: str, limit: int = VISUAL_DESCRIPTION_MAX_CHARS) -> str:
    if len(description) <= limit:
        return description
    logger.warning("Visual description too long, truncating from %s", len(description))
    return description[: limit - 3] + "..."


class LLMClient:
    """Client for the vision and image-generation steps, using the OpenAI API spec."""

    def __init__(
        self,
        model_name: str | None = None,
        image_model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        self.model_name = model_name or settings.MODEL_VISION
        self.image_model = image_model or settings.MODEL_IMAGE

        # Use LLM_API_KEY or fallback to OPENAI_API_KEY if only the standard one is set
        resolved_api_key = api_key or settings.LLM_API_KEY or settings.OPENAI_API_KEY
        resolved_base_url = base_url or settings.LLM_BASE_URL

        self.client = AsyncOpenAI(
            base_url=resolved_base_url,
            api_key=resolved_api_key,
        )

    async def describe_image(
        self, image_b64: str, media_type: str, hint: str | None = None
    ) -> str:
        """
        Ask the vision model for a purely physical description of a drawing.
        Returns the description, truncated to fit comfortably in an image prompt.
        """
        prompt_text = VISION_USER_PROMPT
        if hint and hint.strip():
            prompt_text += VISION_HINT_TEMPLATE.format(hint=hint.strip())

        logger.info("Issuing vision request to model %s...", self.model_name)
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media_type};base64,{image_b64}"},
                        },
                        {"type": "text", "text": prompt_text},
                    ],
                }
            ],
            max_tokens=settings.VISION_MAX_TOKENS,
        )

        if not getattr(response, "choices", None):
            logger.error("Received 0 choices from %s: %s", self.model_name, response)
            raise ValueError(f"No response from vision model {self.model_name}")

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ValueError(f"No response from vision model {self.model_name}")

        logger.info("Successfully received vision response from %s.", self.model_name)
        return truncate_description(parse_visual_description(content))

    async def generate_image(self, prompt: str) -> GeneratedImage:
        """
        Generate one image from a text prompt.
        Depending on the model the result is a hosted URL or inline base64; both are returned as-is.
        """
        if not prompt or len(prompt) < IMAGE_PROMPT_MIN_CHARS:
            raise ArtworkError(
                f"Description must be at least {IMAGE_PROMPT_MIN_CHARS} characters long",
                "INVALID_REQUEST",
            )
        if len(prompt) > IMAGE_PROMPT_MAX_CHARS:
            raise ArtworkError(
                f"Description must not exceed {IMAGE_PROMPT_MAX_CHARS} characters",
                "INVALID_REQUEST",
            )

        logger.info(
            "Issuing image request to model %s (prompt length %s)...",
            self.image_model,
            len(prompt),
        )
        response = await self.client.images.generate(
            model=self.image_model,
            prompt=prompt,
            n=1,
            size=settings.IMAGE_SIZE,
            quality=settings.IMAGE_QUALITY,
        )

        data = getattr(response, "data", None) or []
        if not data:
            raise ValueError(f"No image returned from {self.image_model}")

        item = data[0]
        image = GeneratedImage(
            url=getattr(item, "url", None),
            b64_json=getattr(item, "b64_json", None),
            revised_prompt=getattr(item, "revised_prompt", None),
        )
        if not image.url and not image.b64_json:
            raise ValueError(f"No image URL or data returned from {self.image_model}")

        logger.info("Successfully received image from %s.", self.image_model)
        return image
