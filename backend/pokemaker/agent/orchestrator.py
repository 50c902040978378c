import base64
import logging

from pokemaker.agent.artifacts import ArtworkRequest, DrawingInput, GeneratedArtwork
from pokemaker.agent.artwork_agent import ArtworkAgent
from pokemaker.agent.llm_client import LLMClient
from pokemaker.agent.vision_agent import VisionAgent
from pokemaker.storage import ObjectStorage

logger = logging.getLogger(__name__)


async def run_artwork_pipeline(
    drawing: bytes,
    media_type: str,
    *,
    hint: str | None = None,
    creature_name: str | None = None,
    physical_appearance: str | None = None,
    personality: str | None = None,
    llm: LLMClient | None = None,
    storage: ObjectStorage | None = None,
) -> GeneratedArtwork:
    """
    Runs the two outbound steps in order: describe the drawing, then
    generate and store the artwork. Errors surface as ArtworkError.
    """
    llm = llm or LLMClient()

    logger.info("Analyzing drawing for %r...", creature_name)
    analysis = await VisionAgent(llm).run(
        DrawingInput(
            image_b64=base64.b64encode(drawing).decode("ascii"),
            media_type=media_type or "image/png",
            hint=hint,
        )
    )

    logger.info("Generating artwork for %r from analyzed drawing...", creature_name)
    return await ArtworkAgent(llm, storage=storage).run(
        ArtworkRequest(
            visual_description=analysis.visual_description,
            creature_name=creature_name,
            physical_appearance=physical_appearance,
            personality=personality,
        )
    )
