"""
Text utilities for Newsdesk.
"""
import html
import re
from typing import Iterable, List
from urllib.parse import urlparse

# Words dropped when pulling keywords out of a headline
STOP_WORDS = {
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by', 'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have',
    'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could', 'should'
}

SENTENCE_SPLIT = re.compile(r'[.!?]+')
PAGE_SUFFIX = re.compile(r'\.(html|htm|php|asp|aspx)$', re.IGNORECASE)


def clean_text(text: str) -> str:
    """
    Decode HTML entities and collapse whitespace.

    Args:
        text: Raw text, possibly containing entities like &amp; or &nbsp;

    Returns:
        Single-line, trimmed text
    """
    if not text:
        return ""
    text = html.unescape(text).replace('\xa0', ' ')
    return re.sub(r'\s+', ' ', text).strip()


def count_phrase(text: str, phrase: str) -> int:
    """Count whole-word occurrences of phrase in already-lowercased text."""
    return len(re.findall(r'\b' + re.escape(phrase) + r'\b', text))


def count_phrases(text: str, phrases: Iterable[str]) -> int:
    return sum(count_phrase(text, phrase) for phrase in phrases)


def split_fragments(text: str, min_length: int = 0) -> List[str]:
    """
    Like split_sentences, but fragments keep their surrounding whitespace.
    """
    if not text:
        return []
    return [s for s in SENTENCE_SPLIT.split(text) if len(s.strip()) > min_length]


def split_sentences(text: str, min_length: int = 0) -> List[str]:
    """
    Split text on sentence punctuation.

    Args:
        text: Text to split
        min_length: Fragments whose stripped length is not above this are dropped

    Returns:
        List of stripped sentences, in order
    """
    return [s.strip() for s in split_fragments(text, min_length)]


def extract_keywords(title: str, max_keywords: int = 5) -> List[str]:
    """
    Extract the significant words of a title.

    Args:
        title: Headline to analyze
        max_keywords: Maximum number of keywords to return

    Returns:
        Lowercased words longer than three characters, stop words removed,
        in title order
    """
    if not title:
        return []
    words = re.sub(r'[^\w\s]', '', title.lower()).split()
    keywords = [w for w in words if len(w) > 3 and w not in STOP_WORDS]
    return keywords[:max_keywords]


def truncate(text: str, length: int) -> str:
    return (text or "")[:length] + "..."


def domain_from_url(url: str) -> str:
    """
    Get the hostname of a URL without a leading "www.".

    Returns:
        The bare domain, or an empty string if the URL has no host
    """
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith('www.') else host


def title_from_url(url: str) -> str:
    """
    Derive a readable title from the last path segment of a URL.

    "https://x.com/news/fed-signals_cuts.html" becomes "Fed Signals Cuts".
    """
    try:
        parts = [p for p in urlparse(url).path.split('/') if p]
    except ValueError:
        return "Article"
    if not parts:
        return "Article"

    last = PAGE_SUFFIX.sub('', parts[-1])
    words = re.sub(r'[-_]', ' ', last).split()
    if not words:
        return "Article"
    return ' '.join(word[:1].upper() + word[1:] for word in words)
