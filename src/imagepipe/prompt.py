QUALITY_KEYWORDS = ("high quality", "professional", "detailed", "4k")
ENHANCEMENT_SUFFIX = ", high quality, professional, detailed"


def has_quality_keywords(prompt: str) -> bool:
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in QUALITY_KEYWORDS)


def enhance(prompt: str) -> str:
    """Append quality qualifiers that generally improve DALL-E output, unless
    the prompt already carries one of them."""
    if has_quality_keywords(prompt):
        return prompt
    return f"{prompt}{ENHANCEMENT_SUFFIX}"
