"""
Model capability heuristics.

Whether a model accepts images is guessed from its name. There is no
capability query behind this, so misclassification only changes the advisory
note shown with an image attachment.

Dependencies: re (stdlib)
System role: Multimodal model detection
"""

import re

MULTIMODAL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"llava",      # LLaVA models
        r"bakllava",   # BakLLaVA
        r"moondream",
        r"cogvlm",
        r"blip",
        r"fuyu",
        r"qwen",       # Qwen-VL
        r"vision",
        r"vl[-_]",     # Vision-Language variants
        r"clip",
        r"claude3",
        r"gpt4v",
    )
)


def is_multimodal_model(model_name: str | None) -> bool:
    """
    Check if a model likely supports image input.

    Args:
        model_name: Model name as listed by the upstream server

    Returns:
        bool: True if any multimodal pattern matches
    """
    if not model_name:
        return False
    return any(pattern.search(model_name) for pattern in MULTIMODAL_PATTERNS)


def get_model_capabilities(model_name: str | None) -> dict[str, bool]:
    """Capability flags for a model name."""
    return {"supports_images": is_multimodal_model(model_name)}
