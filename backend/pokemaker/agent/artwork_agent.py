import logging

import httpx

from pokemaker.agent.artifacts import ArtworkRequest, GeneratedArtwork, GeneratedImage
from pokemaker.agent.base import BaseAgent
from pokemaker.agent.errors import ArtworkError, translate_openai_error
from pokemaker.agent.llm_client import IMAGE_PROMPT_MAX_CHARS, LLMClient
from pokemaker.agent.prompts.artwork import APPEARANCE_LINE, ARTWORK_PROMPT_TEMPLATE, PERSONALITY_LINE
from pokemaker.storage import ObjectStorage, StorageError, get_storage

logger = logging.getLogger(__name__)

EXTRA_DETAIL_MAX_CHARS = 500


class ArtworkAgent(BaseAgent[ArtworkRequest, GeneratedArtwork]):
    """
    Generates the finished illustration from a visual description and
    copies it into object storage so the stored URL never expires.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        *,
        storage: ObjectStorage | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(llm)
        self.storage = storage or get_storage()
        self._transport = transport

    @staticmethod
    def build_prompt(request: ArtworkRequest) -> str:
        extra_lines = []
        if request.physical_appearance and request.physical_appearance.strip():
            extra_lines.append(
                APPEARANCE_LINE.format(value=request.physical_appearance.strip()[:EXTRA_DETAIL_MAX_CHARS])
            )
        if request.personality and request.personality.strip():
            extra_lines.append(
                PERSONALITY_LINE.format(value=request.personality.strip()[:EXTRA_DETAIL_MAX_CHARS])
            )
        extra_details = ("\n" + "\n".join(extra_lines) + "\n") if extra_lines else ""

        prompt = ARTWORK_PROMPT_TEMPLATE.format(
            visual_description=request.visual_description.strip(),
            extra_details=extra_details,
        )
        if len(prompt) > IMAGE_PROMPT_MAX_CHARS:
            logger.warning("Artwork prompt too long (%s chars), dropping artist extras", len(prompt))
            prompt = ARTWORK_PROMPT_TEMPLATE.format(
                visual_description=request.visual_description.strip(),
                extra_details="",
            )
        return prompt

    async def _download(self, url: str) -> tuple[bytes, str | None]:
        logger.info("Fetching generated image from %s", url)
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ArtworkError(f"Failed to fetch image: {e}", "FETCH_FAILED") from e
        content_type = response.headers.get("content-type")
        return response.content, content_type

    async def _store(self, image: GeneratedImage, request: ArtworkRequest) -> str:
        filename = f"{(request.creature_name or 'artwork').strip() or 'artwork'}.png"
        try:
            if image.b64_json:
                return await self.storage.upload_base64(image.b64_json, filename)
            data, content_type = await self._download(image.url or "")
            return await self.storage.upload(
                data, filename, content_type=content_type or "image/png"
            )
        except StorageError as e:
            raise ArtworkError(f"Failed to save generated image: {e}", "FETCH_FAILED") from e

    async def run(self, input_data: ArtworkRequest) -> GeneratedArtwork:
        prompt = self.build_prompt(input_data)
        logger.info("Generating artwork, final prompt length: %s", len(prompt))

        try:
            image = await self.llm.generate_image(prompt)
        except Exception as e:
            raise translate_openai_error(
                e, prefix="Failed to generate image. ", fallback_code="GENERATION_FAILED"
            ) from e

        image_url = await self._store(image, input_data)
        return GeneratedArtwork(
            image_url=image_url,
            prompt=prompt,
            visual_description=input_data.visual_description,
            revised_prompt=image.revised_prompt,
        )
