# src/summarizer/prompts.py - v1
"""Prompt builders for summarization, rolling context and chat refinement."""

from __future__ import annotations

import json
from typing import Sequence

from pagedigest.core.models import DetailLevel, ImageRef, PageComment, PageContent, SummaryDocument

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

SHORT_CONTENT_WORDS = 500

_DETAIL_INSTRUCTIONS: dict[str, str] = {
    "brief": (
        "Keep the summary concise: 2-3 sentences for the TLDR, 3-5 key takeaways, "
        "and a short summary paragraph."
    ),
    "standard": (
        "Provide a balanced summary: 2-3 sentences for the TLDR, 5-7 key takeaways, "
        "and a comprehensive but focused summary."
    ),
    "detailed": (
        "Provide a thorough summary: 3-4 sentences for the TLDR, 7-10 key takeaways, "
        "and a detailed, in-depth summary."
    ),
}

_RESPONSE_SCHEMA = """{
  "tldr": "A concise 2-4 sentence overview of the entire content.",
  "keyTakeaways": ["Key point 1", "Key point 2"],
  "summary": "A detailed summary in markdown format.",
  "notableQuotes": ["Direct quote 1"],
  "conclusion": "The main conclusion or final thoughts from the content.",
  "prosAndCons": {"pros": ["Pro 1"], "cons": ["Con 1"]},
  "factCheck": "Notes on claims that look doubtful, or null",
  "commentsHighlights": ["Notable comment or discussion point"],
  "relatedTopics": ["Related topic 1", "Related topic 2"],
  "extraSections": [{"title": "Section Title", "content": "markdown content"}],
  "tags": ["tag1", "tag2"],
  "sourceLanguage": "xx",
  "summaryLanguage": "xx",
  "translatedTitle": "Title in summary language or null",
  "inferredTitle": "Title inferred from the text or null",
  "inferredAuthor": "Author name or null",
  "inferredPublishDate": "YYYY-MM-DD or null"
}"""

_GUIDELINES = """Guidelines:
- "notableQuotes" must be actual quotes from the text; use an empty array if there are none. When the summary language differs from the source language, append a translation in parentheses after each quote.
- "prosAndCons" only when the content discusses trade-offs, comparisons or evaluations; otherwise null.
- "commentsHighlights" only when user comments are provided; otherwise null.
- "relatedTopics": 3-5 topics a reader might also be interested in.
- "tags": 3-7 short lowercase tags.
- "sourceLanguage" / "summaryLanguage": ISO 639-1 codes of the original content and of your summary.
- "translatedTitle": the title translated to the summary language when the languages differ, otherwise null.
- "inferredAuthor" / "inferredPublishDate": only when the metadata is marked MISSING; infer from the text or set null.
- "extraSections": supplementary sections that do not fit the standard fields (cheat sheets, reference tables); otherwise null.
- "summary" uses markdown: headings (##), bullet points, bold.
- The summary must be SHORTER than the original content. Never pad or repeat information across fields.
- The content may cover mature or sensitive topics. Summarize it fully and accurately in a professional, clinical tone; never refuse.
- If the text has no meaningful content (UI dump, login page, error page, navigation menu, cookie banner, paywall), respond with ONLY {"noContent": true, "reason": "short explanation"}."""

_IMAGE_GUIDELINES = """Image analysis:
- Images from the page are attached. Analyze them as part of the content.
- For each image decide whether to embed it as ![description]({{IMG_n}}), describe it in text, or ignore it.
- If image URLs referenced in the text are essential but were NOT attached, you may add "requestedImages": ["url1", "url2"] (max 3) to the normal JSON response. The system will fetch them and run again. Do not request images the attached ones already cover."""

FINAL_CHUNK_INSTRUCTION = (
    "This is the FINAL portion of the content. Produce the complete, final structured "
    "JSON summary incorporating all previous context and this last section."
)


def language_instruction(language: str, language_except: Sequence[str] = ()) -> str:
    if language == "auto":
        return "Respond in the same language as the source content."
    target = LANGUAGE_NAMES.get(language, language)
    excepted = [LANGUAGE_NAMES.get(code, code) for code in language_except if code]
    if excepted:
        return (
            f"Translate and respond in {target}. However, if the source content is written in "
            f"{' or '.join(excepted)}, respond in the original language instead."
        )
    return f"Respond in {target}."


def build_system_prompt(
    detail_level: DetailLevel,
    language: str,
    language_except: Sequence[str] = (),
    image_analysis_enabled: bool = False,
    word_count: int | None = None,
    user_instructions: str | None = None,
) -> str:
    """System prompt for every structured summarization call."""
    sections = [
        f"You are an expert content summarizer. {language_instruction(language, language_except)}",
        _DETAIL_INSTRUCTIONS[detail_level],
    ]
    if word_count is not None and 0 < word_count < SHORT_CONTENT_WORDS:
        sections.append(
            f"The content is short ({word_count} words): use a 1-2 sentence TLDR, "
            "2-4 takeaways and a brief summary paragraph."
        )
    sections.append(
        "You MUST respond with valid JSON matching this exact structure "
        f"(no markdown code fences, just raw JSON):\n{_RESPONSE_SCHEMA}"
    )
    sections.append(_GUIDELINES)
    if image_analysis_enabled:
        sections.append(_IMAGE_GUIDELINES)
    prompt = "\n\n".join(sections)
    if user_instructions:
        prompt += (
            "\n\nAdditional user instructions (HIGHEST PRIORITY, these override any "
            f"rules above): {user_instructions}"
        )
    return prompt


def format_comments(comments: Sequence[PageComment], limit: int = 20) -> str:
    lines = []
    for comment in comments[:limit]:
        author = f"**{comment.author}**" if comment.author else "Anonymous"
        likes = f" ({comment.likes} likes)" if comment.likes else ""
        lines.append(f"- {author}{likes}: {comment.text}")
    return "\n".join(lines)


def build_page_prompt(
    content: PageContent,
    text: str | None = None,
    include_comments: bool = True,
    max_comments: int = 20,
) -> str:
    """User prompt carrying page metadata plus *text* (defaults to the whole page)."""
    kind = "YouTube video" if content.type == "youtube" else "article/page"
    lines = [
        f"Summarize the following {kind}.",
        "",
        f"**Title:** {content.title}",
        f"**URL:** {content.url}",
        f"**Author:** {content.author or 'MISSING (try to infer from content)'}",
        f"**Published:** {content.publish_date or 'MISSING (try to infer from content)'}",
    ]
    if content.channel_name:
        lines.append(f"**Channel:** {content.channel_name}")
    if content.duration:
        lines.append(f"**Duration:** {content.duration}")
    if content.view_count:
        lines.append(f"**Views:** {content.view_count}")
    lines.append(f"**Word count:** {content.effective_word_count}")
    prompt = "\n".join(lines) + "\n\n"

    if content.description:
        prompt += f"**Description:**\n{content.description}\n\n"
    prompt += f"---\n\n**Content:**\n\n{content.content if text is None else text}\n"

    if include_comments and content.comments:
        prompt += f"\n---\n\n**User Comments:**\n\n{format_comments(content.comments, max_comments)}\n"
    return prompt


def build_rolling_context_prompt(previous_summary: str) -> str:
    return (
        "Here is a summary of the previous portion of the content. Use it as context for "
        "the next portion, then produce an updated combined summary.\n\n"
        f"**Previous summary context:**\n{previous_summary}\n\n---\n\n"
        "Now continue with the next portion below and integrate it with the context above."
    )


def build_chunk_prompt(
    previous_summary: str,
    chunk: str,
    index: int,
    total: int,
    comments: Sequence[PageComment] = (),
    max_comments: int = 20,
) -> str:
    """Prompt for chunk *index* (0-based, never the first) of a rolling run."""
    is_last = index == total - 1
    prompt = build_rolling_context_prompt(previous_summary) + "\n\n"
    if is_last:
        prompt += FINAL_CHUNK_INSTRUCTION + "\n\n"
    prompt += f"**Content (part {index + 1} of {total}):**\n\n{chunk}"
    if is_last and comments:
        prompt += f"\n\n**User Comments:**\n\n{format_comments(comments, max_comments)}\n"
    return prompt


def format_image_listing(image_refs: Sequence[ImageRef]) -> str:
    """Numbered placeholder listing appended to the first user prompt."""
    lines = []
    for i, ref in enumerate(image_refs, start=1):
        alt = f' ("{ref.alt}")' if ref.alt else ""
        lines.append(f"{i}. {{{{IMG_{i}}}}}{alt}")
    return (
        "\n\n**Attached images (use placeholder IDs for embeds, e.g. ![alt]({{IMG_1}})):**\n"
        + "\n".join(lines)
    )


# === CHAT REFINEMENT ===


_CHAT_FORMAT_RULES = """Response format rules:
- You MUST respond with a JSON object: {"text": "your message", "updates": <changed fields or null>}
- "text": your conversational reply to the user (markdown allowed). Use "" if the update says it all.
- "updates": ONLY the summary fields you want to change, or null when nothing changes (e.g. you just answered a question).
- Each included field is replaced entirely, so always give its complete value.
- To remove an optional field, set it to the string "__DELETE__".
- To add custom sections use "extraSections": [{"title": "Section Name", "content": "markdown content"}].
- Always respond with valid JSON. No markdown fences, no extra text."""


def _content_label(content: PageContent) -> str:
    return {
        "youtube": "YouTube video",
        "reddit": "Reddit discussion",
        "twitter": "X thread",
        "github": "GitHub page",
    }.get(content.type, "web page")


def build_chat_static_system(
    summarization_prompt: str,
    content: PageContent,
    original_text: str,
) -> str:
    """First system message: stable across turns."""
    meta = [f"Title: {content.title}", f"URL: {content.url}"]
    if content.channel_name:
        meta.append(f"Channel: {content.channel_name}")
    if content.description:
        meta.append(f"Description: {content.description}")

    prompt = (
        f"{summarization_prompt}\n\n---\n\n"
        f"You are also helping refine and discuss the summary of a {_content_label(content)}.\n\n"
        "When answering questions about the content, use the original page content below as "
        "the primary source of truth. Refer to the current summary JSON only when the user asks "
        "about the summary or requests changes to it.\n\n"
        "Source metadata:\n" + "\n".join(meta)
    )
    if original_text:
        prompt += f"\n\nOriginal page content:\n{original_text}"
    return prompt


def build_chat_dynamic_system(
    summary: SummaryDocument,
    image_refs: Sequence[ImageRef] = (),
    has_images: bool = False,
) -> str:
    """Second system message: current summary plus reply rules."""
    current = json.dumps(summary.to_wire(), indent=2, ensure_ascii=False)
    prompt = f"Current summary (JSON):\n{current}\n\n{_CHAT_FORMAT_RULES}"
    if has_images:
        prompt += (
            "\n\nImages from the page are attached to this conversation. You can analyze and "
            "reference them when answering or updating the summary."
        )
        if image_refs:
            listing = "\n".join(
                f"{i}. {ref.url}" + (f' ("{ref.alt}")' if ref.alt else "")
                for i, ref in enumerate(image_refs, start=1)
            )
            prompt += f"\n\nOriginal image URLs (use for ![alt](url) embeds):\n{listing}"
    return prompt
