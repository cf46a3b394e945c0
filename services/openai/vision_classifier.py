"""Description: Damage classification of site photos using OpenAI's chat completions vision input."""

import logging
import os
import time
from typing import Any, Optional

from openai import AsyncOpenAI

from models.session_models import ClassificationResult
from services.openai.cost_generator import CostGenerator
from services.openai.image_prompts import build_analysis_prompt
from services.openai.media_inputs import build_messages
from services.openai.response_parser import extract_text, extract_usage, finalize_comment

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
MAX_OUTPUT_TOKENS = 300


class VisionClassifier:
    """Send one photo to the hosted vision model and return a short finding."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = DEFAULT_MODEL,
        cost_generator: Optional[CostGenerator] = None,
    ) -> None:
        """Initialize the classifier with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.prompt = build_analysis_prompt()
        self.cost_generator = cost_generator or CostGenerator()

    async def classify(self, image_bytes: bytes) -> ClassificationResult:
        """Classify visible damage in `image_bytes`.

        Never raises: transport, API and parsing failures are returned as
        `ClassificationResult(success=False, error=...)`.
        """
        start_time = time.time()
        try:
            response = await self._create_completion(image_bytes)
            comment = finalize_comment(extract_text(response))
            usage = extract_usage(response)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Error during vision classification: %s", exc)
            return ClassificationResult.failure(str(exc) or "Unknown error during analysis")

        cost_usd = self._estimate_cost(usage["input_tokens"], usage["output_tokens"])
        LOGGER.info(
            "Classified image in %.2fs (%d in / %d out tokens, $%.6f)",
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
            cost_usd,
        )
        return ClassificationResult(
            success=True,
            comment=comment,
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
            cost_usd=cost_usd,
        )

    async def _create_completion(self, image_bytes: bytes) -> Any:
        return await self.client.chat.completions.create(
            model=self.model,
            messages=build_messages(self.prompt, image_bytes),
            max_tokens=MAX_OUTPUT_TOKENS,
        )

    def _estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        try:
            return self.cost_generator.total_cost(input_tokens, output_tokens, self.model)
        except ValueError as exc:
            # Unpriced model: report the finding without a cost
            LOGGER.warning("Cost estimate unavailable: %s", exc)
            return 0.0

# end of VisionClassifier
