"""
Message Sources
The engine never touches the page directly: it lists candidate message
nodes, reads and rewrites them through a MessageSource. HtmlMessageSource
implements that over a BeautifulSoup document (saved snapshot or fetched page).
"""

from pathlib import Path

import requests
from bs4 import BeautifulSoup

DEFAULT_SELECTORS = {
    'message': '.markup-2BOw-j',
    'title': '.title-29uC1r',
    'input': 'textarea',
    'emoji': 'img[aria-label]',
    'container_depth': 4,
}

RENDERED_ATTR = 'data-overlay'
STAGED_ATTR = 'data-overlay-staged'

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'


class MessageSource:
    """Capability the scan loop and the interceptor work against"""

    location = ''

    def displayed_name(self):
        """Channel name currently shown by the page"""
        raise NotImplementedError

    def list_candidates(self):
        """Message handles, most recent first; a fresh generator per call"""
        raise NotImplementedError

    def read(self, handle):
        raise NotImplementedError

    def write(self, handle, markup):
        raise NotImplementedError

    def add_container_hints(self, handle, classes):
        """Add CSS classes to the message's container, skipping ones present"""
        raise NotImplementedError

    def emoji_elements(self):
        """(aria_label, outer_html) pairs for rendered emoji images"""
        raise NotImplementedError

    def text_inputs(self):
        raise NotImplementedError


class HtmlTextInput:
    """
    A <textarea> of the page

    `value` is what the host would submit. While masked, the element shows a
    label and the submitted value is kept in a data attribute.
    """

    def __init__(self, tag):
        self.tag = tag

    @property
    def value(self):
        if STAGED_ATTR in self.tag.attrs:
            return self.tag[STAGED_ATTR]
        return self.tag.get_text()

    @value.setter
    def value(self, text):
        if STAGED_ATTR in self.tag.attrs:
            del self.tag[STAGED_ATTR]
        self.tag.string = text

    @property
    def masked(self):
        return STAGED_ATTR in self.tag.attrs

    @property
    def shown(self):
        """What the user sees in the box"""
        return self.tag.get_text()

    def mask(self, label):
        if not self.masked:
            self.tag[STAGED_ATTR] = self.tag.get_text()
        self.tag.string = label


class HtmlMessageSource(MessageSource):
    """MessageSource over a parsed HTML page"""

    def __init__(self, html, location, selectors=None):
        """
        Args:
            html (str): Page markup
            location (str): URL the page was loaded from
            selectors (dict): Overrides for DEFAULT_SELECTORS
        """
        self.soup = BeautifulSoup(html, 'html.parser')
        self.location = location
        self.selectors = dict(DEFAULT_SELECTORS)
        if selectors:
            self.selectors.update(selectors)

    @classmethod
    def from_file(cls, path, location, selectors=None):
        with open(Path(path), 'r', encoding='utf-8') as f:
            return cls(f.read(), location, selectors)

    @classmethod
    def from_url(cls, url, selectors=None):
        """
        Fetch a page over HTTP

        Returns:
            HtmlMessageSource, or None if the page could not be fetched
        """
        try:
            response = requests.get(url, headers={'User-Agent': USER_AGENT}, timeout=10)
        except requests.RequestException as e:
            print(f"[✗] Fetch failed for {url}: {e}")
            return None

        if response.status_code != 200:
            print(f"[✗] {url} returned status {response.status_code}")
            return None

        return cls(response.text, url, selectors)

    def to_html(self):
        return str(self.soup)

    def displayed_name(self):
        title = self.soup.select_one(self.selectors['title'])
        return title.get_text() if title else ''

    def list_candidates(self):
        for node in reversed(self.soup.select(self.selectors['message'])):
            if node.get(RENDERED_ATTR) == 'rendered':
                continue
            yield node

    def read(self, handle):
        return handle.decode_contents()

    def write(self, handle, markup):
        handle.clear()
        fragment = BeautifulSoup(markup, 'html.parser')
        for child in list(fragment.contents):
            handle.append(child.extract())
        handle[RENDERED_ATTR] = 'rendered'

    def container_of(self, handle):
        """Ancestor `container_depth` levels up, or the highest one available"""
        node = handle
        for _ in range(self.selectors['container_depth']):
            parent = node.parent
            if parent is None or parent.name == '[document]':
                break
            node = parent
        return node

    def add_container_hints(self, handle, classes):
        container = self.container_of(handle)
        current = list(container.get('class', []))
        for css_class in classes:
            if css_class not in current:
                current.append(css_class)
        container['class'] = current

    def emoji_elements(self):
        for img in self.soup.select(self.selectors['emoji']):
            yield img.get('aria-label'), str(img)

    def text_inputs(self):
        return [HtmlTextInput(tag) for tag in self.soup.select(self.selectors['input'])]
