from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from uuid import UUID


InteractionType = Literal["like", "dislike", "skip", "view"]
ResolutionType = Literal["scheduled_viewing", "saved_for_later", "final_pass", "discussion_needed"]


class MutualLike(BaseModel):
    property_id: str
    liked_by_count: int
    first_liked_at: str
    last_liked_at: str
    user_ids: List[str] = Field(default_factory=list)


class HouseholdActivity(BaseModel):
    id: str
    user_id: str
    property_id: str
    interaction_type: str
    created_at: str
    user_display_name: str = "Unknown"
    property_address: str = ""
    property_price: float = 0
    property_bedrooms: float = 0
    property_bathrooms: float = 0
    property_images: List[str] = Field(default_factory=list)
    is_mutual: bool = False


class CouplesStats(BaseModel):
    total_mutual_likes: int
    total_household_likes: int
    activity_streak_days: int
    last_mutual_like_at: Optional[str] = None


class PotentialMutualLike(BaseModel):
    would_be_mutual: bool
    partner_user_id: Optional[str] = None


class InteractionOutcome(BaseModel):
    """Result of routing an interaction through the couples middleware"""
    mutual_like_created: bool = False
    partner_user_id: Optional[str] = None
    cache_cleared: bool = False


class NotifyRequest(BaseModel):
    propertyId: UUID
    interactionType: InteractionType


class NotifyResponse(BaseModel):
    success: bool
    mutual_like_created: bool
    notification_sent: bool
    partner_user_id: Optional[str] = None


class Milestone(BaseModel):
    type: str = "mutual_likes"
    count: int


class DisputedPartner(BaseModel):
    user_id: str
    user_name: str
    user_email: str = ""
    interaction_type: str
    created_at: str
    score_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class DisputedPropertySummary(BaseModel):
    address: str = "Unknown Address"
    price: float = 0
    bedrooms: float = 0
    bathrooms: float = 0
    square_feet: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    listing_status: str = "unknown"


class DisputedProperty(BaseModel):
    property_id: str
    property: DisputedPropertySummary
    partner1: DisputedPartner
    partner2: DisputedPartner
    status: str = "pending"
    resolution_type: Optional[ResolutionType] = None
    last_updated: str


class DisputedResolutionRequest(BaseModel):
    property_id: str = Field(min_length=1)
    resolution_type: ResolutionType
