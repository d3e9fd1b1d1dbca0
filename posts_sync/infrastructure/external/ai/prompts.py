"""
Prompts de generación de texto e imagen.

Los textos de los prompts están en inglés porque los posts lo están.
"""

# ~4 caracteres por token; límite de entrada del modelo ≈ 32k tokens
MAX_PROMPT_CHARS = 128_000

# Margen para las instrucciones que envuelven el contenido
MAX_CONTENT_CHARS = 120_000

DEFAULT_MAX_KEYWORDS = 5


def _clip(content: str) -> str:
    return content[:MAX_CONTENT_CHARS]


def summary_prompt(content: str) -> str:
    return (
        "You are an expert summarizer. Your task is to create concise, informative summaries "
        "that capture the key points of technical articles. Please provide a concise summary "
        "(maximum 3 sentences) of the following technical article. Highlight the key "
        "technologies, concepts, and takeaways. Do NOT include \"Summary:\" or any other prefix "
        f"in your response, just provide the summary directly:\n\n{_clip(content)}"
    )


def tags_prompt(content: str, max_keywords: int = DEFAULT_MAX_KEYWORDS) -> str:
    return (
        f"Extract {max_keywords} relevant keywords or keyphrases from the following content. "
        "Provide them as a comma-separated list. Focus on terms that would work well as tags "
        f"or for SEO:\n\n{_clip(content)}"
    )


def reading_time_prompt(content: str) -> str:
    return (
        "Analyze the following technical content and estimate how many minutes it would take "
        "an average reader to read and comprehend it. Consider factors like technical "
        "complexity, code snippets, and diagrams. Return ONLY the number of minutes "
        "(e.g., \"5\" for 5 minutes). Do not include any other text or explanation:"
        f"\n\n{_clip(content)}"
    )


IMAGE_NEGATIVE_PROMPT = (
    "text, words, writing, watermark, signature, blurry, low quality, ugly, distorted, "
    "photorealistic, photograph, human faces, hands, cluttered, chaotic layout, overly complex, "
    "childish, cartoon-like, unprofessional, characters, text overlay, letters, numbers, any text"
)

IMAGE_STYLE = {
    "scene": "in a clean, minimalist digital environment with subtle tech-related background elements",
    "style": "modern digital art style with clean lines and a professional look, suitable for technical articles",
    "composition": "frontal perspective with balanced composition, moderate depth of field focusing on the central concept",
    "lighting": "soft, even lighting with subtle highlights to emphasize important elements, cool blue accent lighting",
    "atmosphere": "informative, innovative, precise, and engaging atmosphere",
    "details": (
        "with subtle grid patterns, simplified icons or symbols related to the prompt, using a "
        "cohesive color palette of blues, teals, and neutral tones"
    ),
    "quality": "high-resolution, sharp details, professional vector-like quality",
}

# Límite de la API de imágenes para el prompt positivo
MAX_IMAGE_PROMPT_CHARS = 1000
MAX_IMAGE_SUBJECT_CHARS = 200


def image_prompt(subject: str) -> str:
    """Prompt de ilustración a partir del título/resumen del post."""
    clean = subject.replace('"', "").replace("'", "").strip()
    clean = clean[:MAX_IMAGE_SUBJECT_CHARS]
    prompt = (
        f'A professional technical illustration representing the concept of "{clean}" '
        f"without any text or labels {IMAGE_STYLE['scene']}. "
        f"Style: {IMAGE_STYLE['style']}. "
        f"Composition: {IMAGE_STYLE['composition']}. "
        f"Lighting: {IMAGE_STYLE['lighting']}. "
        f"Atmosphere: {IMAGE_STYLE['atmosphere']}. "
        f"Details: {IMAGE_STYLE['details']}. "
        f"Quality: {IMAGE_STYLE['quality']}. "
        "Do not include any text, words, labels or characters in the image."
    )
    return prompt[:MAX_IMAGE_PROMPT_CHARS]
