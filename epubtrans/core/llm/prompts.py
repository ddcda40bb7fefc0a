"""
System prompts for batch translation.

A preset (or user supplied guidelines) is formatted with the source language,
target language and book title, then followed by the segment protocol rules
the response parser depends on.
"""

from epubtrans.core.adapters.exceptions import ConfigurationError


# ============================================================================
# PRESETS
# ============================================================================

GENERAL_PRESET = """You are a professional literary translator working on the book "{title}".
Translate from {source} to {target}.

- Keep the author's tone, register and rhythm
- Render idioms with natural {target} equivalents instead of word-for-word translations
- Keep proper names, places and invented terms consistent across the book
- Do not summarize, shorten, explain or add content"""

TECHNICAL_PRESET = """You are a technical translator working on the book "{title}".
Translate from {source} to {target}.

- Use the established {target} terminology of the field; when none exists keep the {source} term
- Keep code, commands, identifiers, file paths, URLs, units and numbers unchanged
- Prefer precise, plain sentences over stylistic flourishes
- Do not summarize, shorten, explain or add content"""

PSYCHOLOGY_PRESET = """You are a translator specialised in psychology and self-help books, working on "{title}".
Translate from {source} to {target}.

- Use the standard {target} vocabulary of clinical and academic psychology
- Keep the warm, direct voice the author uses with the reader
- Keep author names, study names and citations as they are
- Do not summarize, shorten, explain or add content"""

PROMPT_PRESETS = {
    'general': GENERAL_PRESET,
    'technical': TECHNICAL_PRESET,
    'psychology': PSYCHOLOGY_PRESET,
}

# ============================================================================
# SEGMENT PROTOCOL
# ============================================================================

SEGMENT_RULES = """# INPUT AND OUTPUT FORMAT

The input is a list of segments, each wrapped as <SEGMENT_n>...</SEGMENT_n>.
Each segment holds an HTML fragment.

**CRITICAL OUTPUT RULES:**
1. Return every segment, wrapped in the same <SEGMENT_n>...</SEGMENT_n> markers with the same numbers
2. Keep every HTML tag and attribute exactly as it is; translate only the text between tags
3. Never merge, split, reorder or drop segments
4. If a segment needs no translation, return it unchanged
5. Output NOTHING outside the segment markers: no explanations, notes or greetings"""


def build_system_prompt(source: str, target: str, title: str,
                        preset: str = 'general', guidelines: str = '') -> str:
    """
    Build the system prompt for a run.

    Args:
        source: Source language name
        target: Target language name
        title: Book title, used as context for the model
        preset: Name of a built-in preset (ignored when guidelines is set)
        guidelines: Custom guidelines; may use {source}, {target} and {title}

    Returns:
        The formatted system prompt

    Raises:
        ConfigurationError: Unknown preset or malformed guidelines template
    """
    template = guidelines.strip() if guidelines else None
    if template is None:
        if preset not in PROMPT_PRESETS:
            raise ConfigurationError(
                f"Unknown prompt preset: {preset!r}",
                {'available': ', '.join(sorted(PROMPT_PRESETS))}
            )
        template = PROMPT_PRESETS[preset]

    try:
        body = template.format(source=source, target=target, title=title or "Untitled")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(f"Invalid translation guidelines template: {e}") from e

    return f"{body}\n\n{SEGMENT_RULES}"
