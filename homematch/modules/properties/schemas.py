from pydantic import BaseModel
from typing import List, Dict, Any


class VibesListResponse(BaseModel):
    data: List[Dict[str, Any]]
