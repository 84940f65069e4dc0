"""Instruction text, output schema and message assembly for the text model."""

from __future__ import annotations

import textwrap
from typing import Any, Dict, List

from .models import Brief, NoReference, ReferenceFile

SYSTEM_INSTRUCTION = (
    "You are an expert educational video director and storyboard artist. "
    "You organize complex ideas into clear, linear visual sequences strictly adhering "
    "to creative briefs and attached concept documents."
)

SKETCH_STYLE_SUFFIX = (
    "minimalistic storyboard sketch style, pencil drawing, rough concept art, "
    "wide shot aspect ratio, black and white or muted colors, simple lines, clean composition"
)

_CUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "cutNumber": {"type": "integer"},
        "visualDescription": {
            "type": "string",
            "description": (
                "Detailed description of the screen content (Composition, Background, "
                "Characters, Expressions, Actions, Camera Angle)."
            ),
        },
        "sourceFileName": {
            "type": "string",
            "description": "A hypothetical file name for the source footage.",
        },
        "subtitles": {
            "type": "string",
            "description": "On-screen text/captions suitable for the target audience level.",
        },
        "narration": {
            "type": "string",
            "description": "Audio script including commentary, character dialogue, and sound effects (SFX).",
        },
        "imagePrompt": {
            "type": "string",
            "description": "A specific, concise prompt optimized for an AI image generator to create a storyboard sketch.",
        },
    },
    "required": [
        "cutNumber",
        "visualDescription",
        "sourceFileName",
        "subtitles",
        "narration",
        "imagePrompt",
    ],
    "additionalProperties": False,
}

STORYBOARD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The title of the video content."},
        "synopsis": {"type": "string", "description": "A brief synopsis of the video content."},
        "cuts": {"type": "array", "items": _CUT_SCHEMA},
    },
    "required": ["title", "synopsis", "cuts"],
    "additionalProperties": False,
}

RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {"name": "storyboard", "schema": STORYBOARD_SCHEMA, "strict": True},
}

_ATTACHMENT_NOTICE = (
    "**IMPORTANT: A Concept Board file has been attached. Analyze its visuals, character "
    "designs, and tone, and strictly apply them to the storyboard.**"
)


def build_instruction(brief: Brief) -> str:
    has_reference = isinstance(brief.reference, ReferenceFile)
    notice = _ATTACHMENT_NOTICE if has_reference else ""
    concept_note = brief.concept_settings.strip() or "Refer to the attached file if available."

    return textwrap.dedent(
        f"""
        Create a professional educational video storyboard based on the following Creative Brief.

        {notice}

        # CREATIVE BRIEF
        - **Topic:** {brief.topic}
        - **Purpose:** {brief.purpose}
        - **Target Audience:** {brief.target_audience}
        - **Key Concepts:** {brief.key_concepts}
        - **Narrative Flow:** {brief.narrative_flow}
        - **Cut Count / Duration:** {brief.cut_count}
        - **Constraints:** {brief.constraints}
        - **Concept/Character Settings (Text Note):** {concept_note}

        # GENERATION RULES (Strict Adherence Required)

        1. **Visual Description (Screen Content & Expression):**
           - Describe the scene concretely: Composition, Background, Characters, Facial Expressions, Actions, and Camera Angles (e.g., Close-up, Wide shot).
           - Do NOT use abstract terms. Be visual.
           - If a concept board is attached, use the characters and visual style defined in it.

        2. **Subtitles:**
           - Must match the reading level of the "{brief.target_audience}".
           - Summarize key messages briefly. Avoid overly long sentences.

        3. **Narration:**
           - Include Commentary, Character Dialogue, and Sound Effects (SFX).
           - Educational explanations must be accurate and concise.

        4. **Flow & Structure:**
           - Strictly follow the provided "Narrative Flow".
           - Adhere to the requested "Cut Count".

        5. **Restrictions:**
           - Do NOT warp characters or change their defined settings.
           - Maintain brand tone.
           - No exaggeration or violent expressions.
           - Do NOT distort educational concepts.
           - Ensure language (Subtitles/Narration) matches the input language.

        Output the result in JSON format matching the schema.
        """
    ).strip()


def _reference_part(reference: ReferenceFile) -> Dict[str, Any]:
    if reference.is_image:
        return {"type": "image_url", "image_url": {"url": reference.data_uri}}
    return {
        "type": "file",
        "file": {"filename": reference.name, "file_data": reference.data_uri},
    }


def build_messages(brief: Brief) -> List[Dict[str, Any]]:
    """System + user messages; the user message carries the attachment when present."""
    parts: List[Dict[str, Any]] = [{"type": "text", "text": build_instruction(brief)}]

    reference = brief.reference
    if isinstance(reference, ReferenceFile):
        parts.append(_reference_part(reference))
    elif isinstance(reference, NoReference):
        pass
    else:
        raise TypeError(f"Unsupported reference variant: {type(reference).__name__}")

    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": parts},
    ]


def sketch_prompt(prompt: str) -> str:
    return f"{prompt.strip()}, {SKETCH_STYLE_SUFFIX}"
