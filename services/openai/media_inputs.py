"""Utilities to build multimodal chat messages for the vision model."""

import base64
from typing import Any, Dict, List


def to_image_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """Convert raw image bytes into a data URL suitable for vision input."""
    if not image_bytes:
        raise ValueError("Image bytes are required for classification.")
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def build_messages(prompt: str, image_bytes: bytes) -> List[Dict[str, Any]]:
    """Build a single user message carrying the prompt followed by the image."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": to_image_data_url(image_bytes)}},
            ],
        }
    ]
