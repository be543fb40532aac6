"""
Content Classifier / Renderer
Turns decrypted plaintext into safe markup: link, image and video embeds,
emoji shorthand substitution and sizing hints for the message container
"""

import html as html_module
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse, parse_qs

SECURE_SCHEME = 'https://'
WIDE_THRESHOLD = 80
VERY_WIDE_THRESHOLD = 200

CONTAINER_CLASS = 'encryptedMessageContainer'
RICH_MEDIA_CLASS = 'containsImage'

EMBED_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')
TAG_PATTERN = re.compile(r'</?[^>]+(>|$)')

IFRAME_STYLE = 'width: 99%; max-width:700px; height:400px;'
IMAGE_STYLE = 'max-height: 600px; max-width: 600px;'


class SizeHint(Enum):
    """Width hints for long messages; both can apply at once"""
    WIDE = "widermessage"
    VERY_WIDE = "evenwidermessage"


class ClassificationAmbiguous(Exception):
    """A link looks like a video but its embed code cannot be extracted"""


@dataclass(frozen=True)
class DecryptedRender:
    markup: str
    size_hints: frozenset
    rich_media: bool

    @property
    def container_classes(self):
        """CSS classes for the message container, in a stable order"""
        classes = [CONTAINER_CLASS]
        if self.rich_media:
            classes.append(RICH_MEDIA_CLASS)
        for hint in SizeHint:
            if hint in self.size_hints:
                classes.append(hint.value)
        return classes


def _youtube_code(url):
    query = parse_qs(urlparse(url).query)
    codes = query.get('v')
    if not codes:
        raise ClassificationAmbiguous(f"no video id in {url}")
    return codes[0]


def _bitchute_code(url):
    code = url.split('.com/video/', 1)[1].split('?', 1)[0].strip('/')
    if not code:
        raise ClassificationAmbiguous(f"no video id in {url}")
    return code


# Recognized by a distinctive path segment: (marker, code extractor, embed base)
VIDEO_PLATFORMS = [
    ('youtube.com/watch', _youtube_code, 'https://www.youtube.com/embed/'),
    ('bitchute.com/video/', _bitchute_code, 'https://www.bitchute.com/embed/'),
]


def _anchor(url):
    escaped = html_module.escape(url)
    return f'<a href="{escaped}">{escaped}</a><br/><br/>'


def _video_markup(url):
    """Anchor + iframe for a known platform, None if the URL is not a video"""
    for marker, extract_code, embed_base in VIDEO_PLATFORMS:
        if marker not in url:
            continue
        code = extract_code(url)
        if not EMBED_CODE_PATTERN.match(code):
            raise ClassificationAmbiguous(f"unusable video id {code!r}")
        return (
            _anchor(url)
            + f'<iframe src="{embed_base}{code}" style="{IFRAME_STYLE}"></iframe>'
        )
    return None


def _link_markup(url):
    try:
        video = _video_markup(url)
    except ClassificationAmbiguous:
        video = None
    if video:
        return video
    escaped = html_module.escape(url)
    return _anchor(url) + f'<img alt="" src="{escaped}" style="{IMAGE_STYLE}">'


def classify_links(plaintext):
    """
    Split plaintext into segments and classify link tokens

    Returns:
        tuple: (segments, found_media) where segments is a list of
            (text, is_markup) pairs; plain text is not yet escaped
    """
    segments = []
    found_media = False

    for token in re.split(r'(\s+)', plaintext):
        if not token:
            continue
        position = token.find(SECURE_SCHEME)
        if position < 0:
            segments.append((token, False))
            continue
        if position > 0:
            segments.append((token[:position], False))
        segments.append((_link_markup(token[position:]), True))
        found_media = True

    return segments, found_media


def substitute_emojis(segments, emoji_map):
    """
    Replace the first occurrence of each known shorthand code

    Only plain text segments are searched, so markup inserted for links or
    for an earlier code is never rewritten.
    """
    for code, fragment in emoji_map.items():
        if not code:
            continue
        for index, (text, is_markup) in enumerate(segments):
            if is_markup or code not in text:
                continue
            before, after = text.split(code, 1)
            replacement = [(fragment, True)]
            if before:
                replacement.insert(0, (before, False))
            if after:
                replacement.append((after, False))
            segments[index:index + 1] = replacement
            break
    return segments


def visible_length(markup):
    return len(html_module.unescape(TAG_PATTERN.sub('', markup)))


def size_hints_for(markup):
    length = visible_length(markup)
    hints = set()
    if length > WIDE_THRESHOLD:
        hints.add(SizeHint.WIDE)
    if length > VERY_WIDE_THRESHOLD:
        hints.add(SizeHint.VERY_WIDE)
    return frozenset(hints)


def render(plaintext, emoji_map=None):
    """
    Render decrypted plaintext as safe rich markup

    Args:
        plaintext (str): Decrypted message
        emoji_map (dict): Shorthand code -> markup fragment

    Returns:
        DecryptedRender: Markup, sizing hints and the rich media flag
    """
    segments, found_media = classify_links(plaintext)

    if emoji_map and ':' in plaintext:
        segments = substitute_emojis(segments, emoji_map)

    markup = ''.join(
        text if is_markup else html_module.escape(text, quote=False)
        for text, is_markup in segments
    )

    return DecryptedRender(
        markup=markup,
        size_hints=size_hints_for(markup),
        rich_media=found_media,
    )
