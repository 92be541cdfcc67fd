from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Literal
from uuid import UUID


InteractionType = Literal["like", "dislike", "skip", "view"]
InteractionCategory = Literal["liked", "passed", "viewed"]

# List categories and the stored interaction types they cover
CATEGORY_TYPES: Dict[str, List[str]] = {
    "liked": ["like"],
    "passed": ["skip", "dislike"],
    "viewed": ["view"],
}


class InteractionCreate(BaseModel):
    propertyId: UUID
    type: InteractionType


class InteractionResponse(BaseModel):
    id: str
    user_id: str
    property_id: str
    interaction_type: str
    household_id: Optional[str] = None
    created_at: Optional[str] = None


class InteractionSummary(BaseModel):
    liked: int = 0
    passed: int = 0
    viewed: int = 0


class InteractionPage(BaseModel):
    items: List[Dict[str, Any]]
    nextCursor: Optional[str] = None
