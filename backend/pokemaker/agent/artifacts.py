from pydantic import BaseModel, Field


class DrawingInput(BaseModel):
    image_b64: str = Field(description="Base64 image data without the data: URL prefix")
    media_type: str = Field(default="image/png", description="MIME type of the drawing")
    hint: str | None = Field(default=None, description="Optional words from the artist about the drawing")


class DrawingAnalysis(BaseModel):
    """Artifact produced by the Vision Agent."""
    visual_description: str = Field(description="Purely physical description of the drawn creature")


class ArtworkRequest(BaseModel):
    visual_description: str
    creature_name: str | None = None
    physical_appearance: str | None = Field(
        default=None, description="What the artist wants the creature to look like"
    )
    personality: str | None = Field(
        default=None, description="Mood or personality the artwork should convey"
    )


class GeneratedImage(BaseModel):
    """Raw image-generation result. Providers return either a URL or inline base64."""
    url: str | None = None
    b64_json: str | None = None
    revised_prompt: str | None = None


class GeneratedArtwork(BaseModel):
    """Artifact produced by the Artwork Agent, already copied into object storage."""
    image_url: str
    prompt: str
    visual_description: str
    revised_prompt: str | None = None
