from pydantic import BaseModel
from typing import List, Dict, Any


class NeighborhoodVibesListResponse(BaseModel):
    data: List[Dict[str, Any]]
