"""
Emoji Cache
Shorthand code (':name:') -> rendered emoji markup, learned from the page
"""

STORAGE_KEY = 'emojidata'


def _asset_emoji(code, asset):
    return (
        f'<img src="/assets/{asset}.svg" aria-label="{code}" alt="{code}" '
        'draggable="false" class="emoji jumboable">'
    )


def _custom_emoji(code, emoji_id):
    return (
        f'<img aria-label="{code}" src="https://cdn.discordapp.com/emojis/{emoji_id}.png?v=1" '
        f'alt="{code}" draggable="false" class="emoji jumboable">'
    )


# Known before anything is harvested; stored or learned markup takes precedence
DEFAULT_EMOJIS = {
    ':joy:': _asset_emoji(':joy:', 'cae9e3b02af6e987442df2953de026fc'),
    ':frowning2:': _asset_emoji(':frowning2:', 'b61c4e14e90e796e36f0d10792fcc505'),
    ':money_mouth:': _asset_emoji(':money_mouth:', '5cdb67d23b259628f475e663ef9907e7'),
    ':smile:': _asset_emoji(':smile:', 'f0835a46b501ae0a182874b003fdbb65'),
    ':sunglasses:': _asset_emoji(':sunglasses:', 'd0df7bf4acd843defa4e417cf767a574'),
    ':heart_eyes:': _asset_emoji(':heart_eyes:', '7e4f6dcf32845bfa865cf17491faf867'),
    ':heart:': _asset_emoji(':heart:', 'dcbf6274f0ce0f393d064a72db2c8913'),
    ':sob:': _asset_emoji(':sob:', '4dc13fd52f691020a1308c5b6cbc6f49'),
    ':thumbsup:': _asset_emoji(':thumbsup:', '2af915882260fdb89538d1610e1d9baa'),
    ':ok_hand:': _asset_emoji(':ok_hand:', 'b6f700d4bc253abdb5ad576917b756d8'),
    ':ingves_guld:': _custom_emoji(':ingves_guld:', '586594745711591425'),
    ':ingves_concerned:': _custom_emoji(':ingves_concerned:', '586595195701821475'),
    ':cry:': _asset_emoji(':cry:', '2a6e66e7de157c4051fb7abf7d8b0063'),
    ':thinking:': _asset_emoji(':thinking:', '53ef346458017da2062aca5c7955946b'),
    ':broken_heart:': _asset_emoji(':broken_heart:', '8fee3f6705505729fea8c7379934d794'),
    ':grimacing:': _asset_emoji(':grimacing:', 'be0923fd964bff1a6ea77c14fe227a63'),
    ':pensive:': _asset_emoji(':pensive:', 'f1f76882104c8724124954b6edfed6d4'),
    ':money_with_wings:': _asset_emoji(':money_with_wings:', '630828f0eaa647bf465b3b903b0dbc5f'),
    ':moneybag:': _asset_emoji(':moneybag:', 'ccebe0b729ff7530c5e37dbbd9f9938c'),
    ':clown:': _asset_emoji(':clown:', '1beee7912bb5016975747a3086794957'),
    ':smiley:': _asset_emoji(':smiley:', 'b731b88b6459090c02b8d1e31a552c5a'),
    ':scream:': _asset_emoji(':scream:', '9bd8b85559466379744360f8c9841f39'),
    ':wave:': _asset_emoji(':wave:', '593c4a3437fbb5b89fbb148f7b96424d'),
}


class EmojiCache:
    """Append-only emoji map backed by the key store"""

    def __init__(self, key_store):
        self.key_store = key_store
        self._emojis = dict(DEFAULT_EMOJIS)
        self._emojis.update(key_store.get(STORAGE_KEY) or {})

    def __len__(self):
        return len(self._emojis)

    def __contains__(self, code):
        return code in self._emojis

    def lookup(self):
        """Current code -> markup mapping (read-only view for the renderer)"""
        return self._emojis

    def harvest(self, labelled_elements):
        """
        Learn codes from rendered emoji elements

        Args:
            labelled_elements: Iterable of (aria_label, outer_html) pairs

        Returns:
            int: Number of codes that were not known before
        """
        added = 0
        for label, markup in labelled_elements:
            if not label or not label.startswith(':') or label in self._emojis:
                continue
            self._emojis[label] = markup
            added += 1
        return added

    def persist(self):
        """Merge with the stored map and write the union back"""
        self.key_store.reload()
        stored = self.key_store.get(STORAGE_KEY) or {}
        merged = dict(stored)
        merged.update(self._emojis)
        self._emojis = merged
        self.key_store.set(STORAGE_KEY, merged)
        return len(merged)
