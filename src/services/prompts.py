from typing import Optional, Sequence

from models.domain import DescriptionStyle, GenerationSettings, TagLanguage
from prompts import load_prompt

DESCRIPTION_STYLE_INSTRUCTIONS = {
    DescriptionStyle.DEFAULT: (
        "Provide a balanced professional analysis covering the mood, character archetypes, "
        "setting, and potential genre tropes."
    ),
    DescriptionStyle.EMOTION: (
        "Focus intensively on the emotional core. Analyze the character's gaze, the color "
        "psychology, and the tension in the composition. Describe the unspoken feelings."
    ),
    DescriptionStyle.PLOT: (
        "Analyze the image as a story hook. What conflict is being shown? What is the impending "
        "action? Describe the narrative stakes implied by the visual elements."
    ),
    DescriptionStyle.TEEN: (
        "Write in a punchy, high-energy style appealing to a Young Adult audience. Use dynamic "
        "verbs and focus on the \"cool\" or \"dramatic\" factors."
    ),
}

LANGUAGE_INSTRUCTIONS = {
    TagLanguage.EN: (
        "- **CRITICAL CONSTRAINT:** You MUST return the exact string from the **'原始标签' (English)** column.\n"
        "- **STRICTLY FORBIDDEN:** Do NOT use Chinese characters for tags."
    ),
    TagLanguage.SC: (
        "- **CRITICAL CONSTRAINT:** You MUST return the exact string from the **'名称' (Simplified Chinese)** column.\n"
        "- **STRICTLY FORBIDDEN:** Do NOT use English or Traditional Chinese for tags."
    ),
    TagLanguage.TC: (
        "- **CRITICAL CONSTRAINT:** You MUST return the exact string from the **'台灣翻譯' (Traditional Chinese)** column.\n"
        "- **STRICTLY FORBIDDEN:** Do NOT use English or Simplified Chinese for tags."
    ),
}


def description_instruction(style: DescriptionStyle) -> str:
    return DESCRIPTION_STYLE_INSTRUCTIONS.get(
        DescriptionStyle(style), DESCRIPTION_STYLE_INSTRUCTIONS[DescriptionStyle.DEFAULT]
    )


def language_instruction(language: TagLanguage) -> str:
    return LANGUAGE_INSTRUCTIONS[TagLanguage(language)]


def feedback_instruction(
    pinned_tags: Optional[Sequence[str]] = None,
    excluded_tags: Optional[Sequence[str]] = None,
) -> str:
    parts = []
    if pinned_tags:
        parts.append(
            "**CRITICAL FEEDBACK:** The user has explicitly **PINNED** these tags. You MUST include "
            f"them in your selection if they are even remotely applicable: {', '.join(pinned_tags)}."
        )
    if excluded_tags:
        parts.append(
            "**CRITICAL FEEDBACK:** The user has explicitly **EXCLUDED** these tags. "
            f"Do NOT use them: {', '.join(excluded_tags)}."
        )
    return "\n\n".join(parts)


def build_generation_prompt(
    tag_library_csv: str,
    settings: GenerationSettings,
    pinned_tags: Optional[Sequence[str]] = None,
    excluded_tags: Optional[Sequence[str]] = None,
) -> str:
    return load_prompt(
        "tagging/generate_tags",
        description_instruction=description_instruction(settings.description_style),
        tags_count=settings.tags_count,
        language_instruction=language_instruction(settings.tag_language),
        feedback_instruction=feedback_instruction(pinned_tags, excluded_tags),
        tag_library=tag_library_csv,
    )


def build_explanation_prompt(tag_name: str, tag_description: str) -> str:
    return load_prompt(
        "tagging/explain_tag",
        tag_name=tag_name,
        tag_description=tag_description,
    )


def chat_system_instruction() -> str:
    return load_prompt("tagging/chat_system")
