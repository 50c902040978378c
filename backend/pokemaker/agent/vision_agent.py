import logging

from pokemaker.agent.artifacts import DrawingAnalysis, DrawingInput
from pokemaker.agent.base import BaseAgent
from pokemaker.agent.errors import translate_openai_error

logger = logging.getLogger(__name__)


class VisionAgent(BaseAgent[DrawingInput, DrawingAnalysis]):
    """
    Turns an uploaded drawing into a purely visual text description
    that the Artwork Agent can feed to the image model.
    """

    async def run(self, input_data: DrawingInput) -> DrawingAnalysis:
        try:
            description = await self.llm.describe_image(
                input_data.image_b64,
                input_data.media_type,
                hint=input_data.hint,
            )
        except Exception as e:
            raise translate_openai_error(
                e, prefix="Failed to analyze image. ", fallback_code="ANALYSIS_FAILED"
            ) from e

        logger.info("Visual analysis from drawing: %s", description)
        return DrawingAnalysis(visual_description=description)
