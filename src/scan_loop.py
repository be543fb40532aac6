"""
Scan-Transform Loop
Polls the page for encrypted messages, decrypts and re-renders them,
learns emojis and hides staged outbound ciphertext

There is no "message received" event to hook, so every tick rescans the
whole message list. Rewritten messages no longer carry the marker, which
keeps repeated ticks from touching them again.
"""

import time
from dataclasses import dataclass, field

import message_codec
from content_renderer import render
from outbound import mask_pending_inputs
from utils import load_config

FALLBACK_TEXT = '[could not be decrypted]'

DEFAULT_CONFIG = {
    'tick_interval_ms': 5,
    'emoji_harvest_every': 1000,
    'mask_every': 1,
    'fallback_text': FALLBACK_TEXT,
    'verbose': False,
}


@dataclass
class TickReport:
    tick: int
    decrypted: int = 0
    failed: int = 0
    emojis_learned: int = 0
    inputs_masked: int = 0
    errors: list = field(default_factory=list)


# setting -> (accepted types, smallest accepted value)
CADENCE_LIMITS = {
    'tick_interval_ms': ((int, float), 0),
    'emoji_harvest_every': (int, 1),
    'mask_every': (int, 1),
}


def _check_cadence(config):
    """Replace unusable interval and tick-count settings with their defaults"""
    for key, (types, minimum) in CADENCE_LIMITS.items():
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, types) or value < minimum:
            print(f"[!] Invalid {key} {value!r} in config, using {DEFAULT_CONFIG[key]}")
            config[key] = DEFAULT_CONFIG[key]


class ScanTransformLoop:
    """Recurring decrypt/render task bound to one message source"""

    def __init__(self, source, deriver, codec=message_codec, config=None):
        """
        Args:
            source (MessageSource): Page being overlaid
            deriver (PassphraseDeriver): Secret lookup + passphrase derivation
            codec: Module or object with decode(transport, passphrase)
            config (dict): Loop settings (default: 'overlay' section of config.json)
        """
        self.source = source
        self.deriver = deriver
        self.codec = codec
        self.config = config if config is not None else load_config('overlay', DEFAULT_CONFIG)
        for key, value in DEFAULT_CONFIG.items():
            self.config.setdefault(key, value)
        _check_cadence(self.config)

    def refresh_passphrase(self, session):
        session.passphrase = self.deriver.for_page(
            self.source.location, self.source.displayed_name()
        )
        return session.passphrase

    def decrypt_pass(self, session, report=None):
        """
        Decrypt and rewrite every marker-carrying message, most recent first

        Returns:
            TickReport: Counts for this pass
        """
        report = report or TickReport(tick=session.tick_count)
        fallback = self.config['fallback_text']

        for handle in self.source.list_candidates():
            try:
                transport = message_codec.unwrap_marker(self.source.read(handle))
                if transport is None:
                    continue

                result = self.codec.decode(transport, session.passphrase)
                if not result.ok:
                    self.source.write(handle, fallback)
                    report.failed += 1
                    continue

                rendered = render(result.plaintext, session.emoji_cache.lookup())
                self.source.write(handle, rendered.markup)
                self.source.add_container_hints(handle, rendered.container_classes)
                report.decrypted += 1
            except Exception as e:
                print(f"[!] Message could not be rendered: {e}")
                report.errors.append(str(e))
                report.failed += 1
                try:
                    self.source.write(handle, fallback)
                except Exception as write_error:
                    report.errors.append(str(write_error))

        return report

    def harvest_emojis(self, session):
        """Learn emoji codes shown on the page and persist the merged map"""
        learned = session.emoji_cache.harvest(self.source.emoji_elements())
        try:
            total = session.emoji_cache.persist()
        except OSError as e:
            # learned codes stay in memory and are written on a later harvest
            print(f"[!] Could not save emoji map: {e}")
            return learned
        if learned and self.config['verbose']:
            print(f"[+] Learned {learned} emoji(s), {total} known")
        return learned

    def tick(self, session):
        """One iteration: passphrase, decrypt pass, periodic emoji harvest, masking"""
        tick = session.advance()
        report = TickReport(tick=tick)

        self.refresh_passphrase(session)
        self.decrypt_pass(session, report)

        if tick % self.config['emoji_harvest_every'] == 0:
            report.emojis_learned = self.harvest_emojis(session)

        if tick % self.config['mask_every'] == 0:
            report.inputs_masked = mask_pending_inputs(session, self.source.text_inputs())

        if self.config['verbose'] and (report.decrypted or report.failed):
            print(f"[+] Tick {tick}: {report.decrypted} decrypted, {report.failed} failed")

        return report

    def run(self, session, max_ticks=None):
        """
        Tick until max_ticks is reached (forever when None)

        A tick that runs longer than the interval just delays the next one.
        """
        interval = self.config['tick_interval_ms'] / 1000.0
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            started = time.monotonic()
            self.tick(session)
            ticks += 1
            elapsed = time.monotonic() - started
            if elapsed < interval:
                time.sleep(interval - elapsed)
        return ticks
