from pydantic import BaseModel, Field
from typing import Optional, List, Literal


# Lifestyle tags the model may suggest
LIFESTYLE_TAGS = [
    "Work from Home Ready",
    "Commuter Friendly",
    "Cozy Retreat",
    "Entertainment Haven",
    "Family Haven",
    "Culinary Paradise",
    "Pet Paradise",
    "Wellness Sanctuary",
    "Natural Light Haven",
    "Urban Oasis",
    "Weekend Retreat",
    "Outdoor Living",
    "City Views",
    "Beach Lifestyle",
    "Future Family Home",
    "Entertainer's Dream",
    "First-Time Buyer Friendly",
    "Investment Ready",
    "Modern Minimalist",
    "Classic Charm",
]


class Vibe(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    intensity: float = Field(ge=0, le=1)
    source: Literal["interior", "exterior", "both"]


class LifestyleFit(BaseModel):
    category: str = Field(min_length=1, max_length=50)
    score: float = Field(ge=0, le=1)
    reason: str = Field(min_length=1, max_length=200)


class NotableFeature(BaseModel):
    feature: str = Field(min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, max_length=50)
    appealFactor: str = Field(min_length=1, max_length=200)


class Aesthetics(BaseModel):
    lightingQuality: Literal["natural_abundant", "natural_moderate", "artificial_warm", "artificial_cool", "mixed"]
    colorPalette: List[str] = Field(max_length=4)
    architecturalStyle: str = Field(max_length=50)
    overallCondition: Literal["pristine", "well_maintained", "dated_but_clean", "needs_work"]


class LLMVibesOutput(BaseModel):
    """Structured output expected from the vision model"""
    tagline: str = Field(min_length=10, max_length=80)
    vibeStatement: str = Field(min_length=20, max_length=200)
    primaryVibes: List[Vibe] = Field(min_length=2, max_length=4)
    lifestyleFits: List[LifestyleFit] = Field(min_length=2, max_length=6)
    notableFeatures: List[NotableFeature] = Field(min_length=2, max_length=8)
    aesthetics: Aesthetics
    emotionalHooks: List[str] = Field(min_length=2, max_length=4)
    suggestedTags: List[str] = Field(min_length=2, max_length=4)


class SelectedImage(BaseModel):
    url: str
    category: str
    index: int


class ImageSelectionResult(BaseModel):
    selectedImages: List[SelectedImage]
    strategy: Literal["comprehensive", "balanced", "limited", "single"]
    totalAvailable: int


class PropertyInput(BaseModel):
    """Property fields used for prompting and change detection"""
    id: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: Optional[str] = None
    price: float = 0
    bedrooms: float = 0
    bathrooms: float = 0
    square_feet: Optional[float] = None
    property_type: Optional[str] = None
    year_built: Optional[int] = None
    lot_size_sqft: Optional[float] = None
    amenities: Optional[List[str]] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None

    model_config = {"extra": "ignore"}


class TokenUsage(BaseModel):
    promptTokens: int = 0
    completionTokens: int = 0
    totalTokens: int = 0


class VibesGenerationResult(BaseModel):
    propertyId: str
    vibes: LLMVibesOutput
    images: ImageSelectionResult
    usage: TokenUsage
    costUsd: float = 0
    processingTimeMs: int = 0
    rawOutput: str = ""
    model: str


class VibesGenerationFailure(BaseModel):
    propertyId: str
    error: str
    code: Optional[str] = None


class BatchGenerationResult(BaseModel):
    success: List[VibesGenerationResult] = Field(default_factory=list)
    failed: List[VibesGenerationFailure] = Field(default_factory=list)
    totalCostUsd: float = 0
    totalTimeMs: int = 0
