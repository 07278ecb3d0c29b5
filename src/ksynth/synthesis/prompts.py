"""Prompt templates for LLM synthesis."""

TYPE_INSTRUCTIONS = {
    "framework": (
        "Structure them into one comprehensive framework. Make the relationships "
        "between the key concepts explicit and draw higher-level, integrated insights."
    ),
    "summary": "Summarize the essentials concisely. Extract and merge the main points of each note.",
    "comparison": (
        "Analyze the similarities and differences between the notes. Use tables or "
        "a structured comparison."
    ),
    "timeline": "Arrange the material chronologically. Emphasize how things developed or changed.",
}

LANGUAGE_NAMES = {"en": "English", "ko": "Korean"}

TYPE_LABELS = {
    "framework": "Framework",
    "summary": "Summary",
    "comparison": "Comparison",
    "timeline": "Timeline",
}

SYNTHESIS_PROMPT = """You are a personal knowledge management expert. Analyze the following notes and {instructions}

## Guidelines
- Language: {language}
- Preserve the key insights of the original notes
- Surface new connections and patterns
- Write in Markdown
{backlinks}
## Source notes

{notes}

## Synthesis"""

BACKLINKS_GUIDELINE = "- Include backlinks to the source notes ([[Note title]]) where relevant\n"

TITLE_PROMPT = """Suggest a title for a synthesis note that combines the following notes.
Keep it concise and to the point. Return only the title, without quotes.

Notes: {titles}

Title:"""

TYPE_PROMPT = """Analyze the following notes and pick the single most suitable synthesis type. Return only the type name.

Notes: {titles}

Synthesis types:
- framework: structure several concepts into one framework
- summary: summarize the key content
- comparison: compare and contrast the notes
- timeline: arrange chronologically

Answer with exactly one of: framework, summary, comparison, timeline."""

NOTE_SEPARATOR = "\n\n---\n\n"
