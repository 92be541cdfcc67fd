import hashlib
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from homematch.modules.vibes.image_selector import select_strategic_images
from homematch.modules.vibes.openrouter_client import (
    OpenRouterClient, create_openrouter_client, create_vision_message
)
from homematch.modules.vibes.prompts import VIBES_SYSTEM_PROMPT, build_user_prompt
from homematch.modules.vibes.schemas import (
    BatchGenerationResult, LLMVibesOutput, PropertyInput,
    VibesGenerationFailure, VibesGenerationResult
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DELAY_MS = 1000
DEFAULT_CONFIDENCE = 0.85
HASH_IMAGE_COUNT = 5


class VibesGenerationError(Exception):
    pass


def _js_number(value: Any) -> Any:
    # 3.0 -> 3 so hashes match rows hashed from JSON numbers
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def generate_source_hash(prop: Dict[str, Any]) -> str:
    """md5 over the listing fields that should trigger regeneration when they change"""
    payload: Dict[str, Any] = {
        "address": prop.get("address"),
        "city": prop.get("city"),
        "property_type": prop.get("property_type"),
        "bedrooms": _js_number(prop.get("bedrooms")),
        "bathrooms": _js_number(prop.get("bathrooms")),
        "square_feet": _js_number(prop.get("square_feet")),
        "price": _js_number(prop.get("price")),
        "year_built": _js_number(prop.get("year_built")),
    }
    images = prop.get("images")
    if images is not None:
        payload["images"] = images[:HASH_IMAGE_COUNT]
    encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(encoded.encode("utf-8")).hexdigest()


def to_insert_record(result: VibesGenerationResult, prop: Dict[str, Any]) -> Dict[str, Any]:
    """property_vibes row for a generation result"""
    vibes = result.vibes
    selected = result.images.selectedImages
    return {
        "property_id": result.propertyId,
        "tagline": vibes.tagline,
        "vibe_statement": vibes.vibeStatement,
        "feature_highlights": [f.model_dump() for f in vibes.notableFeatures],
        "lifestyle_fits": [f.model_dump() for f in vibes.lifestyleFits],
        "suggested_tags": vibes.suggestedTags,
        "emotional_hooks": vibes.emotionalHooks,
        "primary_vibes": [v.model_dump() for v in vibes.primaryVibes],
        "aesthetics": vibes.aesthetics.model_dump(),
        "input_data": {
            "property": {
                key: prop.get(key)
                for key in (
                    "address", "city", "state", "price", "bedrooms", "bathrooms",
                    "square_feet", "property_type", "year_built", "lot_size_sqft", "amenities",
                )
            },
            "images": [{"url": img.url, "category": img.category} for img in selected],
            "modelId": result.model,
        },
        "raw_output": result.rawOutput,
        "model_used": result.model,
        "images_analyzed": [img.url for img in selected],
        "source_data_hash": generate_source_hash(prop),
        "generation_cost_usd": result.costUsd,
        "confidence": DEFAULT_CONFIDENCE,
    }


class VibesService:
    def __init__(self, client: Optional[OpenRouterClient] = None, sleep: Callable[[float], None] = time.sleep):
        self.client = client or create_openrouter_client()
        self._sleep = sleep

    def generate_vibes(self, prop: Dict[str, Any]) -> VibesGenerationResult:
        """Select images, ask the vision model and validate its JSON"""
        start = time.monotonic()
        property_input = PropertyInput(**{k: v for k, v in prop.items() if v is not None})
        selection = select_strategic_images(
            property_input.images, property_input.property_type, property_input.lot_size_sqft
        )
        if not selection.selectedImages:
            raise VibesGenerationError(f"No images available for property {property_input.id}")

        image_urls = [img.url for img in selection.selectedImages]
        messages = [
            {"role": "system", "content": VIBES_SYSTEM_PROMPT},
            create_vision_message(build_user_prompt(property_input, len(image_urls)), image_urls, "low"),
        ]
        raw, usage, cost = self.client.chat_completion(
            messages,
            temperature=0.7,
            max_tokens=2000,
            response_format={"type": "json_object"},
        )
        if not raw:
            raise VibesGenerationError("Empty response from LLM")

        try:
            vibes = LLMVibesOutput.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to parse LLM response for property {property_input.id}: {raw[:500]}")
            raise VibesGenerationError(f"Failed to parse LLM response: {e}") from e

        return VibesGenerationResult(
            propertyId=property_input.id,
            vibes=vibes,
            images=selection,
            usage=usage,
            costUsd=cost,
            processingTimeMs=int((time.monotonic() - start) * 1000),
            rawOutput=raw,
            model=self.client.default_model,
        )

    def generate_vibes_batch(
        self,
        properties: List[Dict[str, Any]],
        delay_ms: int = DEFAULT_BATCH_DELAY_MS,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> BatchGenerationResult:
        """Generate sequentially, pausing delay_ms between properties; failures are collected"""
        start = time.monotonic()
        results = BatchGenerationResult()
        total = len(properties)

        for i, prop in enumerate(properties):
            try:
                result = self.generate_vibes(prop)
                results.success.append(result)
                results.totalCostUsd += result.costUsd
            except Exception as e:
                results.failed.append(VibesGenerationFailure(
                    propertyId=str(prop.get("id")),
                    error=str(e),
                    code=type(e).__name__,
                ))

            if on_progress:
                on_progress(i + 1, total)
            if i < total - 1:
                self._sleep(delay_ms / 1000)

        results.totalTimeMs = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Batch complete: {len(results.success)} success, {len(results.failed)} failed, "
            f"${results.totalCostUsd:.4f} total cost, {results.totalTimeMs}ms"
        )
        return results
