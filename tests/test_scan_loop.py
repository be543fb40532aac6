import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

import message_codec
from chat_page import LOCATION, build_page
from emoji_cache import STORAGE_KEY, EmojiCache
from key_store import KeyStore
from message_codec import DecodeFailure, Decoded, encode, wrap_marker
from outbound import PENDING_LABEL
from page_source import HtmlMessageSource, HtmlTextInput
from passphrase import PassphraseDeriver, derive_passphrase, scope_ids
from scan_loop import DEFAULT_CONFIG, FALLBACK_TEXT, ScanTransformLoop
from session import SessionContext

BROAD_ID, NARROW_ID = scope_ids(LOCATION)


def _store(tmp_path, broad='abcdef', narrow=''):
    store = KeyStore(tmp_path / 'storage.json')
    store.set(BROAD_ID, broad)
    if narrow:
        store.set(NARROW_ID, narrow)
    return store


def _encrypted(plaintext, broad='abcdef', narrow='', channel='general'):
    passphrase = derive_passphrase(LOCATION, broad, narrow, channel)
    return wrap_marker(encode(plaintext, passphrase))


def _loop(source, store, codec=message_codec, **overrides):
    config = dict(DEFAULT_CONFIG, **overrides)
    return ScanTransformLoop(source, PassphraseDeriver(store), codec=codec, config=config)


def _session(store):
    return SessionContext(emoji_cache=EmojiCache(store))


def _messages(source):
    return source.soup.select('.markup-2BOw-j')


def _container_classes(node):
    return node.parent.parent.parent.parent.get('class', [])


def test_hello_end_to_end(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('hello')]), LOCATION)

    report = _loop(source, store).tick(_session(store))

    node = _messages(source)[0]
    assert node.get_text() == 'hello'
    assert report.decrypted == 1
    assert report.failed == 0
    classes = _container_classes(node)
    assert 'encryptedMessageContainer' in classes
    assert 'containsImage' not in classes


def test_youtube_end_to_end(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(
        build_page([_encrypted('check https://youtube.com/watch?v=abc123')]), LOCATION
    )

    _loop(source, store).tick(_session(store))

    node = _messages(source)[0]
    assert node.find('a')['href'] == 'https://youtube.com/watch?v=abc123'
    assert node.find('iframe')['src'] == 'https://www.youtube.com/embed/abc123'
    assert 'containsImage' in _container_classes(node)


def test_mismatched_channel_secret_renders_fallback(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('hello', narrow='zzzzzz')]), LOCATION)

    report = _loop(source, store).tick(_session(store))

    node = _messages(source)[0]
    assert node.get_text() == FALLBACK_TEXT
    assert report.failed == 1
    assert 'encryptedMessageContainer' not in _container_classes(node)


def test_renamed_channel_cannot_decrypt(tmp_path):
    store = _store(tmp_path)
    page = build_page([_encrypted('hello', channel='general')], channel_name='general-chat')
    source = HtmlMessageSource(page, LOCATION)

    _loop(source, store).tick(_session(store))

    assert _messages(source)[0].get_text() == FALLBACK_TEXT


def test_plain_messages_untouched(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page(['just chatting', '§not closed']), LOCATION)
    before = source.to_html()

    report = _loop(source, store).tick(_session(store))

    assert source.to_html() == before
    assert report.decrypted == 0
    assert report.failed == 0


def test_second_pass_changes_nothing(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(
        build_page([_encrypted('hello'), _encrypted('x' * 100), 'plain']), LOCATION
    )
    loop = _loop(source, store)
    session = _session(store)

    loop.tick(session)
    after_first = source.to_html()
    report = loop.tick(session)

    assert source.to_html() == after_first
    assert report.decrypted == 0
    assert _container_classes(_messages(source)[1]).count('widermessage') == 1


def test_decrypted_text_that_looks_like_a_marker_is_not_decoded_again(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('§quoted§')]), LOCATION)
    loop = _loop(source, store)
    session = _session(store)

    loop.tick(session)
    loop.tick(session)

    assert _messages(source)[0].get_text() == '§quoted§'


class RecordingCodec:
    """Decodes 'boom' by raising; everything else succeeds as upper case"""

    def __init__(self):
        self.seen = []

    def decode(self, transport, passphrase):
        self.seen.append(transport)
        if transport == 'boom':
            raise RuntimeError('primitive exploded')
        if transport == 'bad':
            return DecodeFailure('bad padding')
        return Decoded(transport.upper())


def test_most_recent_message_first(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(
        build_page([wrap_marker('one'), 'plain', wrap_marker('two'), wrap_marker('three')]),
        LOCATION,
    )
    codec = RecordingCodec()

    _loop(source, store, codec=codec).tick(_session(store))

    assert codec.seen == ['three', 'two', 'one']


def test_error_is_scoped_to_one_message(tmp_path, capsys):
    store = _store(tmp_path)
    source = HtmlMessageSource(
        build_page([wrap_marker('first'), wrap_marker('boom'), wrap_marker('bad')]), LOCATION
    )

    report = _loop(source, store, codec=RecordingCodec()).tick(_session(store))

    texts = [node.get_text() for node in _messages(source)]
    assert texts == ['FIRST', FALLBACK_TEXT, FALLBACK_TEXT]
    assert report.decrypted == 1
    assert report.failed == 2
    assert report.errors == ['primitive exploded']
    assert '[!]' in capsys.readouterr().out


def test_emojis_harvested_every_nth_tick(tmp_path):
    store = _store(tmp_path)
    page = build_page([], emojis=[(':parrot:', 'https://cdn.example.com/parrot.png')])
    source = HtmlMessageSource(page, LOCATION)
    loop = _loop(source, store, emoji_harvest_every=2)
    session = _session(store)

    assert loop.tick(session).emojis_learned == 0
    assert loop.tick(session).emojis_learned == 1
    assert ':parrot:' in KeyStore(tmp_path / 'storage.json').get(STORAGE_KEY)


def test_harvested_emoji_used_in_next_render(tmp_path):
    store = _store(tmp_path)
    page = build_page(
        [_encrypted('hi :parrot:')], emojis=[(':parrot:', 'https://cdn.example.com/parrot.png')]
    )
    source = HtmlMessageSource(page, LOCATION)
    session = _session(store)
    loop = _loop(source, store)
    loop.harvest_emojis(session)
    loop.refresh_passphrase(session)

    loop.decrypt_pass(session)

    img = _messages(source)[0].find('img')
    assert img['aria-label'] == ':parrot:'
    assert img['src'] == 'https://cdn.example.com/parrot.png'


def test_pending_send_masks_inputs(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([], textarea='§staged§'), LOCATION)
    session = _session(store)
    session.pending_send = True

    report = _loop(source, store).tick(session)

    box = source.text_inputs()[0]
    assert report.inputs_masked == 1
    assert box.shown == PENDING_LABEL
    assert box.value == '§staged§'
    assert isinstance(box, HtmlTextInput)


def test_passphrase_recomputed_each_tick(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([]), LOCATION)
    session = _session(store)
    loop = _loop(source, store)

    loop.tick(session)
    first = session.passphrase
    store.set(NARROW_ID, 'ghijkl')
    loop.tick(session)

    assert first == derive_passphrase(LOCATION, 'abcdef', '', 'general')
    assert session.passphrase == derive_passphrase(LOCATION, 'abcdef', 'ghijkl', 'general')


def test_run_stops_after_max_ticks(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('hello')]), LOCATION)
    session = _session(store)

    assert _loop(source, store, tick_interval_ms=1).run(session, max_ticks=3) == 3
    assert session.tick_count == 3
    assert _messages(source)[0].get_text() == 'hello'


def test_unwritable_store_does_not_stop_the_loop(tmp_path, capsys):
    blocker = tmp_path / 'blocker'
    blocker.write_text('not a directory', encoding='utf-8')
    store = KeyStore(blocker / 'storage.json')
    page = build_page([], emojis=[(':parrot:', 'https://cdn.example.com/parrot.png')])
    source = HtmlMessageSource(page, LOCATION)
    session = _session(store)

    loop = _loop(source, store, tick_interval_ms=1, emoji_harvest_every=1)

    assert loop.run(session, max_ticks=3) == 3
    assert ':parrot:' in session.emoji_cache
    assert '[!] Could not save emoji map' in capsys.readouterr().out


def test_builtin_emoji_rendered_without_harvest(tmp_path):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('lol :joy:')]), LOCATION)

    _loop(source, store).tick(_session(store))

    img = _messages(source)[0].find('img')
    assert img['aria-label'] == ':joy:'
    assert img['src'].startswith('/assets/')


def test_zero_cadence_falls_back_to_defaults(tmp_path, capsys):
    store = _store(tmp_path)
    source = HtmlMessageSource(build_page([_encrypted('hello')]), LOCATION)
    loop = _loop(source, store, emoji_harvest_every=0, mask_every=0, tick_interval_ms=-5)

    assert loop.config['emoji_harvest_every'] == DEFAULT_CONFIG['emoji_harvest_every']
    assert loop.config['mask_every'] == DEFAULT_CONFIG['mask_every']
    assert loop.config['tick_interval_ms'] == DEFAULT_CONFIG['tick_interval_ms']
    assert '[!] Invalid emoji_harvest_every' in capsys.readouterr().out
    assert loop.run(_session(store), max_ticks=2) == 2
    assert _messages(source)[0].get_text() == 'hello'
