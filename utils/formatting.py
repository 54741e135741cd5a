"""
Numbered-list detection and normalization for chat replies and feed posts.

These are presentation transforms driven by textual patterns only. They do
not parse structure, so prices, times and decimals can trigger splits.
"""

import re
from typing import Any, Dict

_NUMBER_MARKER = re.compile(r'\d+\.')
_BULLET = '•'


def has_numbered_points(content: str) -> bool:
    """True when the text contains the literal markers ``1.`` or ``2.``"""
    return '1.' in content or '2.' in content


def split_numbered_points(content: str) -> Dict[str, Any]:
    """
    Split text on ``<digits>.`` markers.

    The first non-empty segment becomes the introduction and every later
    segment one list item, indexed from 1. Text without markers comes back
    as the introduction with no items.

    Args:
        content (str): Text to split

    Returns:
        Dict: ``{"intro": str, "points": [{"index": int, "text": str}, ...]}``
    """
    if not has_numbered_points(content):
        return {'intro': content, 'points': []}

    segments = [segment.strip() for segment in _NUMBER_MARKER.split(content)]
    segments = [segment for segment in segments if segment]
    if not segments:
        return {'intro': content, 'points': []}

    intro, items = segments[0], segments[1:]
    return {
        'intro': intro,
        'points': [{'index': i, 'text': text} for i, text in enumerate(items, start=1)],
    }


def format_bullet_points(content: str) -> str:
    """Render text as an intro line followed by a sequentially numbered list"""
    parts = split_numbered_points(content)
    if not parts['points']:
        return content

    lines = [f"{point['index']}. {point['text']}" for point in parts['points']]
    return f"{parts['intro']}\n\n" + '\n'.join(lines)


def ensure_numbered_list(text: str, min_length: int = 100) -> str:
    """
    Re-segment long unformatted model output into a numbered list.

    Text that already has a digit-dot marker or a bullet character, or is
    not longer than ``min_length``, is returned unchanged. Otherwise the
    text is split on ``". "``; with more than two sentences the first one
    is kept as the introduction and the rest are numbered.
    """
    if _NUMBER_MARKER.search(text) or _BULLET in text or len(text) <= min_length:
        return text

    sentences = [s for s in text.split('. ') if s.strip()]
    if len(sentences) <= 2:
        return text

    intro = sentences[0].strip() + '.'
    points = []
    for index, sentence in enumerate(sentences[1:], start=1):
        sentence = sentence.strip()
        points.append(f"{index}. {sentence}{'' if sentence.endswith('.') else '.'}")

    return f"{intro}\n\n" + '\n'.join(points)
