"""
Strategic image selection for property vibes analysis.

Zillow galleries follow a loose ordering (facade first, kitchen and living
shots early, bedrooms and baths in the middle, yard near the end), so room
categories are picked from typical gallery positions rather than by vision.
"""
import random
from typing import List, Optional

from homematch.modules.vibes.schemas import SelectedImage, ImageSelectionResult

DEFAULT_MAX_IMAGES = 18
HOUSE_TYPES = ("single_family", "house", "townhome")
YARD_MIN_LOT_SQFT = 3000


def select_strategic_images(
    images: Optional[List[str]],
    property_type: Optional[str] = None,
    lot_size_sqft: Optional[float] = None,
    max_images: int = DEFAULT_MAX_IMAGES,
    rng: Optional[random.Random] = None,
) -> ImageSelectionResult:
    """Pick up to max_images gallery images covering the rooms buyers care about most."""
    if not images:
        return ImageSelectionResult(selectedImages=[], strategy="single", totalAvailable=0)

    rng = rng or random.Random()
    total = len(images)
    selected: List[SelectedImage] = []
    used = set()

    def add_image(index: int, category: str) -> bool:
        if 0 <= index < total and index not in used:
            selected.append(SelectedImage(url=images[index], category=category, index=index))
            used.add(index)
            return True
        return False

    def add_multiple(candidates: List[int], category: str, count: int) -> None:
        added = 0
        for index in candidates:
            if added >= count or len(selected) >= max_images:
                break
            if add_image(index, category):
                added += 1

    add_image(0, "hero")
    if total == 1:
        return ImageSelectionResult(selectedImages=selected, strategy="single", totalAvailable=total)

    add_multiple([3, 4, 5, 2, 6], "kitchen", 2)
    add_multiple([1, 2, 4, 5], "living", 2)

    if total > 5:
        add_multiple([6, 7, 8, 9, 10, 11, 5], "bedroom", 3)
    if total > 7:
        add_multiple([9, 10, 11, 12, 8, 13, 14], "bathroom", 2)

    if property_type in HOUSE_TYPES and lot_size_sqft and lot_size_sqft > YARD_MIN_LOT_SQFT:
        tail = [i for i in (total - 1, total - 2, total - 3, total - 4) if i > 0]
        add_multiple(tail, "outdoor", 2)

    if total > 10:
        add_multiple([5, 6, 4, 7], "dining", 1)
    if total > 12:
        add_multiple([12, 13, 14, 11, 15], "office", 1)
    if total > 15:
        add_multiple([total - 5, total - 6, total - 4], "garage", 1)

    if len(selected) < min(max_images, total):
        unused = [i for i in range(total) if i not in used]
        rng.shuffle(unused)
        for index in unused:
            if len(selected) >= max_images:
                break
            add_image(index, "additional")

    count = len(selected)
    if count >= 12:
        strategy = "comprehensive"
    elif count >= 6:
        strategy = "balanced"
    elif count >= 2:
        strategy = "limited"
    else:
        strategy = "single"

    return ImageSelectionResult(selectedImages=selected, strategy=strategy, totalAvailable=total)
