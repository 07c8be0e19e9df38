"""
Style profiles and prompt assembly for article generation.
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class StyleProfile:
    max_output_tokens: int
    word_count: str
    sections: int
    description: str


STYLE_PROFILES: Dict[str, StyleProfile] = {
    "concise": StyleProfile(4000, "250-350", 4, "brief"),
    "moderate": StyleProfile(6000, "350-450", 4, "balanced"),
    "extended": StyleProfile(8000, "400-500", 5, "comprehensive"),
}

ARTICLE_CLASSES = (
    "article-h2", "article-h3", "article-p", "article-ul", "article-ol",
    "article-li", "article-table", "highlight-info",
)


def build_system_prompt(title: str, category: str, profile: StyleProfile) -> str:
    classes = ", ".join(ARTICLE_CLASSES)
    return (
        f"You are a {category} expert. Write a {profile.description} blog article "
        "in HTML for a rich-text editor.\n\n"
        "**Requirements:**\n"
        f'- Title: "{title}"\n'
        f"- Length: {profile.word_count} words\n"
        f'- Sections: {profile.sections} main sections with <h2 class="article-h2">\n'
        "- Paragraphs in <p class=\"article-p\">\n"
        "- Format: HTML only - NO markdown\n\n"
        "**Rules:**\n"
        f"- Use only these CSS classes: {classes}\n"
        "- No inline styles, no <html>, <head> or <body> wrappers\n"
        "- Write original content - don't copy sources"
    )


def build_prompt_parts(
    title: str,
    category: str,
    prompt: str,
    sources: List[str],
    profile: StyleProfile
) -> List[str]:
    """
    Assemble the user turns sent to the generation backend.

    Returns:
        System instructions, the user's instructions and, when present,
        the sources to reference
    """
    parts = [
        build_system_prompt(title, category, profile),
        f"USER INSTRUCTIONS:\n{prompt}",
    ]
    if sources:
        parts.append("SOURCES TO REFERENCE:\n" + "\n".join(sources))
    return parts
