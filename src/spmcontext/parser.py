"""README parser for Swift package documentation.

Single-pass line scanners that pull three things out of a README:

- usage examples: fenced code blocks under usage-style headings, or every
  fenced block in the document when no such heading exists;
- installation snippets for Swift Package Manager, Carthage and CocoaPods;
- topical keywords from a fixed vocabulary plus short heading texts.

Headings inside fenced code blocks are not treated as headings. Only short,
anchored per-line patterns are used, so scan time stays linear in the size
of the document whatever the input looks like.

Every public function is total: an unexpected internal fault is logged and
converted to an empty result. Callers never see an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog

from spmcontext.config import ParserSettings
from spmcontext.models.readme import InstallationInfo, UsageExample

log = structlog.get_logger()

MAX_EXAMPLES = 10
MAX_KEYWORDS = 10
MAX_DESCRIPTION_LINES = 3
MIN_DESCRIPTION_LENGTH = 10  # Descriptions of this length or shorter are noise
MIN_CODE_LENGTH = 10
FALLBACK_TITLE = "Usage Example"

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*)$")
_CARTHAGE_RE = re.compile(r'github\s+"[^"/\n]+/[^"\n]+"', re.IGNORECASE)
_COCOAPODS_RE = re.compile(r"\bpod\s+(?:'[^'\n]+'|\"[^\"\n]+\")", re.IGNORECASE)

# Captured shell sessions and test-runner output, not usage code
_OUTPUT_MARKERS = ("✓", "→", "$")

_LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "ts": "typescript",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "fish": "bash",
    "yml": "yaml",
    "md": "markdown",
    "objective-c": "objc",
    "objectivec": "objc",
}


@dataclass(frozen=True)
class Vocabulary:
    """Word lists that drive heading and keyword matching."""

    usage_phrases: tuple[str, ...] = field(
        default_factory=lambda: tuple(ParserSettings().usage_phrases)
    )
    keywords: tuple[str, ...] = field(default_factory=lambda: tuple(ParserSettings().keywords))

    @classmethod
    def from_settings(cls, settings: ParserSettings) -> Vocabulary:
        return cls(
            usage_phrases=tuple(settings.usage_phrases),
            keywords=tuple(settings.keywords),
        )


DEFAULT_VOCABULARY = Vocabulary()


@dataclass
class _CodeBlock:
    language: str
    code: str
    start: int  # Line index of the opening fence


@dataclass
class _Section:
    title: str
    start: int  # Line index of the heading
    blocks: list[_CodeBlock] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------


def _heading_text(line: str) -> str | None:
    """Return the text of an ATX heading line, or None if it is not one."""
    if not line.startswith("#"):
        return None
    match = _HEADING_RE.match(line)
    if match is None:
        return None
    text = match.group(2).strip()
    # Optional closing sequence, "## Usage ##"; "C#" keeps its hash
    unclosed = text.rstrip("#")
    if not unclosed or unclosed[-1] in " \t":
        text = unclosed
    return text.strip()


def _is_fence(stripped: str) -> bool:
    if not stripped.startswith("```"):
        return False
    # ```inline``` spans on a single line are not fences
    inner = stripped.strip("`")
    return not (inner and stripped.endswith("```"))


def _is_closing_fence(stripped: str) -> bool:
    return len(stripped) >= 3 and stripped.strip("`") == ""


def _is_usage_heading(text: str, phrases: tuple[str, ...]) -> bool:
    lowered = text.lower()
    for phrase in phrases:
        phrase = phrase.lower()
        if lowered.startswith(phrase):
            rest = lowered[len(phrase) :]
            if not rest or not rest[0].isalnum():
                return True
    return False


def normalize_language(tag: str | None) -> str:
    """Map a fence info tag to a canonical language name. Empty → ``text``."""
    normalized = (tag or "").strip().lower()
    if not normalized:
        return "text"
    return _LANGUAGE_ALIASES.get(normalized, normalized)


def _trim_blank_lines(lines: list[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


def _scan(lines: list[str], phrases: tuple[str, ...]) -> tuple[list[_Section], list[_CodeBlock]]:
    """Walk the document once.

    Returns the usage sections (each with its code blocks) and every code
    block in the document. Unclosed fences produce no block.
    """
    sections: list[_Section] = []
    all_blocks: list[_CodeBlock] = []
    current: _Section | None = None

    in_fence = False
    fence_start = 0
    fence_language = ""
    fence_body: list[str] = []

    for index, line in enumerate(lines):
        stripped = line.strip()

        if in_fence:
            if _is_closing_fence(stripped):
                in_fence = False
                code = _trim_blank_lines(fence_body)
                if code.strip():
                    block = _CodeBlock(language=fence_language, code=code, start=fence_start)
                    all_blocks.append(block)
                    if current is not None:
                        current.blocks.append(block)
            else:
                fence_body.append(line)
            continue

        if _is_fence(stripped):
            in_fence = True
            fence_start = index
            info = stripped[3:].strip("`").split()
            fence_language = normalize_language(info[0] if info else None)
            fence_body = []
            continue

        text = _heading_text(line)
        if text is None:
            continue

        # Any heading closes the open usage section
        current = None
        if _is_usage_heading(text, phrases):
            current = _Section(title=text, start=index)
            sections.append(current)

    return sections, all_blocks


def _describe(lines: list[str], block_start: int, section_start: int) -> str | None:
    """Build a description from up to three non-empty lines above a block."""
    collected: list[str] = []
    for index in range(block_start - 1, section_start, -1):
        stripped = lines[index].strip()
        if not stripped:
            continue
        if _heading_text(stripped) is not None or _is_fence(stripped):
            break
        collected.insert(0, stripped)
        if len(collected) >= MAX_DESCRIPTION_LINES:
            break

    description = " ".join(collected).strip()
    return description if len(description) > MIN_DESCRIPTION_LENGTH else None


def _is_valid_example(code: str) -> bool:
    code = code.strip()
    if len(code) < MIN_CODE_LENGTH:
        return False

    # Imports and comments only
    if all(
        not line.strip() or line.strip().startswith(("import ", "//"))
        for line in code.split("\n")
    ):
        return False

    return not any(marker in code for marker in _OUTPUT_MARKERS)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_usage_examples(
    content: str, vocabulary: Vocabulary | None = None
) -> list[UsageExample]:
    """Extract up to ten usage examples, in document order."""
    vocabulary = vocabulary or DEFAULT_VOCABULARY
    try:
        lines = content.splitlines()
        sections, all_blocks = _scan(lines, vocabulary.usage_phrases)

        candidates: list[UsageExample] = []
        if sections:
            for section in sections:
                for position, block in enumerate(section.blocks, start=1):
                    title = (
                        section.title
                        if len(section.blocks) == 1
                        else f"{section.title} {position}"
                    )
                    candidates.append(
                        UsageExample(
                            title=title,
                            description=_describe(lines, block.start, section.start),
                            code=block.code,
                            language=block.language,
                        )
                    )
        else:
            log.debug("readme_no_usage_sections", block_count=len(all_blocks))
            candidates = [
                UsageExample(title=FALLBACK_TITLE, code=block.code, language=block.language)
                for block in all_blocks
            ]

        examples = [
            UsageExample(
                title=example.title.strip(),
                description=(example.description or "").strip() or None,
                code=example.code.strip(),
                language=example.language.strip(),
            )
            for example in candidates
            if _is_valid_example(example.code)
        ][:MAX_EXAMPLES]

        log.debug("readme_usage_examples_extracted", count=len(examples))
        return examples
    except Exception:
        log.error("parser_error", operation="extract_usage_examples", exc_info=True)
        return []


def extract_installation_info(content: str) -> InstallationInfo:
    """Find the first SPM, Carthage and CocoaPods snippet in the document."""
    try:
        spm: str | None = None
        carthage: str | None = None
        cocoapods: str | None = None

        in_fence = False
        fence_body: list[str] = []

        for line in content.splitlines():
            stripped = line.strip()

            if in_fence:
                if _is_closing_fence(stripped):
                    in_fence = False
                    body = "\n".join(fence_body)
                    if spm is None and ".package(" in body:
                        spm = body.strip()
                else:
                    fence_body.append(line)
            elif _is_fence(stripped):
                in_fence = True
                fence_body = []

            # Carthage and CocoaPods lines count wherever they appear
            if carthage is None:
                match = _CARTHAGE_RE.search(line)
                if match:
                    carthage = match.group(0)
            if cocoapods is None:
                match = _COCOAPODS_RE.search(line)
                if match:
                    cocoapods = match.group(0)

            if spm is not None and carthage is not None and cocoapods is not None:
                break

        info = InstallationInfo(spm=spm, carthage=carthage, cocoapods=cocoapods)
        log.debug("readme_installation_extracted", **info.model_dump(exclude_none=True))
        return info
    except Exception:
        log.error("parser_error", operation="extract_installation_info", exc_info=True)
        return InstallationInfo()


def extract_keywords(content: str, vocabulary: Vocabulary | None = None) -> list[str]:
    """Return up to ten lowercase keywords.

    Vocabulary terms found anywhere in the text come first, in vocabulary
    order, then heading texts of 3–19 characters in document order.
    """
    vocabulary = vocabulary or DEFAULT_VOCABULARY
    try:
        keywords: dict[str, None] = {}  # Ordered set
        lowered = content.lower()

        for term in vocabulary.keywords:
            term = term.lower()
            if term in lowered:
                keywords.setdefault(term)

        in_fence = False
        for line in content.splitlines():
            stripped = line.strip()
            if in_fence:
                if _is_closing_fence(stripped):
                    in_fence = False
                continue
            if _is_fence(stripped):
                in_fence = True
                continue
            text = _heading_text(line)
            if text is not None:
                text = text.lower()
                if 2 < len(text) < 20:
                    keywords.setdefault(text)

        result = list(keywords)[:MAX_KEYWORDS]
        log.debug("readme_keywords_extracted", count=len(result))
        return result
    except Exception:
        log.error("parser_error", operation="extract_keywords", exc_info=True)
        return []
