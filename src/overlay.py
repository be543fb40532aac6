"""
Chat Encryption Overlay - Engine and CLI
Wires key store, passphrase derivation, codec, scan loop and interceptor
together, and exposes them on the command line
"""

import argparse
import sys
from pathlib import Path

from tqdm import tqdm

import message_codec
from emoji_cache import EmojiCache
from key_store import KeyStore, SecretTooShort, set_scope_secrets, remove_scope_secrets
from outbound import OutboundInterceptor
from page_source import HtmlMessageSource
from passphrase import PassphraseDeriver, derive_passphrase
from scan_loop import ScanTransformLoop, DEFAULT_CONFIG as LOOP_DEFAULTS
from session import SessionContext
from utils import load_config

DEFAULT_CONFIG = dict(LOOP_DEFAULTS, storage_path='data/storage.json', selectors={})

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_UNDECRYPTABLE = 2
EXIT_FAILED = 4


class ChatOverlay:
    """Engine orchestrator: one key store, any number of attached pages"""

    def __init__(self, config=None, key_store=None):
        self.config = config if config is not None else load_config('overlay', DEFAULT_CONFIG)
        for key, value in DEFAULT_CONFIG.items():
            self.config.setdefault(key, value)
        self.key_store = key_store or KeyStore(self.config['storage_path'])
        self.deriver = PassphraseDeriver(self.key_store)
        self.interceptor = OutboundInterceptor()

    def new_session(self):
        return SessionContext(emoji_cache=EmojiCache(self.key_store))

    def attach(self, source):
        """Scan loop for one page"""
        return ScanTransformLoop(source, self.deriver, config=self.config)

    def load_page(self, path, location):
        return HtmlMessageSource.from_file(path, location, self.config['selectors'])

    def set_keys(self, location, server_key, channel_key=''):
        """Validate and store secrets; raises SecretTooShort"""
        broad_id, narrow_id = set_scope_secrets(self.key_store, location, server_key, channel_key)
        print(f"[+] Server key stored for {broad_id}")
        if channel_key:
            print(f"[+] Channel key stored for {narrow_id}")
        return broad_id, narrow_id

    def remove_keys(self, location):
        broad_id, narrow_id = remove_scope_secrets(self.key_store, location)
        print(f"[+] Keys removed for {broad_id} and {narrow_id}")

    def encrypt_message(self, location, channel_name, text):
        """
        Encrypt text for a channel, ready to paste into the message box

        Returns:
            str: Marker-wrapped transport string
        """
        broad_secret, narrow_secret = self.deriver.secrets_for(location)
        passphrase = derive_passphrase(location, broad_secret, narrow_secret, channel_name)
        return message_codec.wrap_marker(message_codec.encode(text, passphrase))

    def handle_key(self, source, session, key):
        """
        Feed one keydown from the page's primary message box

        Returns:
            bool: False if the page must drop the keystroke
        """
        inputs = source.text_inputs()
        if not inputs:
            return True
        if not session.passphrase:
            self.attach(source).refresh_passphrase(session)
        return self.interceptor.on_key(key, session, inputs[0])

    def render_page(self, source, session=None):
        """
        Run one scan tick over a page

        Returns:
            TickReport: What the tick decrypted
        """
        session = session or self.new_session()
        return self.attach(source).tick(session)

    def decrypt_files(self, paths, location, output_dir='decrypted'):
        """
        Decrypt saved page snapshots

        Args:
            paths (list): HTML files saved from the chat page
            location (str): URL the pages were saved from
            output_dir (str): Where rewritten pages are written

        Returns:
            dict: path -> TickReport (None if the file could not be read)
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        session = self.new_session()
        reports = {}

        for path in tqdm(paths, desc="Decrypting", unit="page"):
            path = Path(path)
            try:
                source = self.load_page(path, location)
            except OSError as e:
                print(f"[✗] Could not read {path}: {e}")
                reports[str(path)] = None
                continue

            reports[str(path)] = self.render_page(source, session)
            out_path = output_dir / path.name
            with open(out_path, 'w', encoding='utf-8') as f:
                f.write(source.to_html())

        return reports


def parse_cli_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Transparent end-to-end encryption overlay for chat pages',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Bind secrets to a server and one of its channels
  python src/overlay.py set-keys https://discord.com/channels/1/2 --server-key s3cret! --channel-key ch4nnel

  # Encrypt a message for that channel
  python src/overlay.py encrypt https://discord.com/channels/1/2 --channel-name general "hello"

  # Decrypt saved copies of the page
  python src/overlay.py decrypt page.html --url https://discord.com/channels/1/2
        """
    )
    parser.add_argument('--config', default=None, help='Config file (default: ./config.json)')
    commands = parser.add_subparsers(dest='command', required=True)

    set_keys = commands.add_parser('set-keys', help='Store server/channel secrets for a URL')
    set_keys.add_argument('url')
    set_keys.add_argument('--server-key', required=True)
    set_keys.add_argument('--channel-key', default='')

    remove_keys = commands.add_parser('remove-keys', help='Delete the secrets for a URL')
    remove_keys.add_argument('url')

    encrypt = commands.add_parser('encrypt', help='Encrypt a message for a channel')
    encrypt.add_argument('url')
    encrypt.add_argument('text')
    encrypt.add_argument('--channel-name', required=True, help='Channel name as displayed by the page')

    decrypt = commands.add_parser('decrypt', help='Decrypt saved page snapshots')
    decrypt.add_argument('files', nargs='+')
    decrypt.add_argument('--url', required=True, help='URL the pages were saved from')
    decrypt.add_argument('--output-dir', default='decrypted', help='Output directory (default: decrypted/)')

    fetch = commands.add_parser('fetch', help='Fetch a page over HTTP and decrypt it')
    fetch.add_argument('url')
    fetch.add_argument('--output', default='decrypted.html', help='Output file (default: decrypted.html)')

    return parser.parse_args(argv)


def main(argv=None):
    """CLI entry point"""
    args = parse_cli_args(argv)
    overlay = ChatOverlay(config=load_config('overlay', DEFAULT_CONFIG, args.config))

    if args.command == 'set-keys':
        try:
            overlay.set_keys(args.url, args.server_key, args.channel_key)
        except SecretTooShort as e:
            print(f"[✗] {e}")
            return EXIT_INVALID
        print("[OK] Done. Reload the page to activate.")
        return EXIT_OK

    if args.command == 'remove-keys':
        overlay.remove_keys(args.url)
        return EXIT_OK

    if args.command == 'encrypt':
        if not args.text.strip():
            print("[✗] Nothing to encrypt")
            return EXIT_INVALID
        print(overlay.encrypt_message(args.url, args.channel_name, args.text))
        return EXIT_OK

    if args.command == 'decrypt':
        reports = overlay.decrypt_files(args.files, args.url, args.output_dir)
        if any(report is None for report in reports.values()):
            return EXIT_FAILED
        decrypted = sum(r.decrypted for r in reports.values())
        failed = sum(r.failed for r in reports.values())
        print(f"\n[+] {decrypted} message(s) decrypted, {failed} could not be decrypted")
        print(f"[+] Pages written to: {args.output_dir}")
        return EXIT_UNDECRYPTABLE if failed else EXIT_OK

    if args.command == 'fetch':
        source = HtmlMessageSource.from_url(args.url, overlay.config['selectors'])
        if source is None:
            return EXIT_FAILED
        report = overlay.render_page(source)
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(source.to_html())
        print(f"[+] {report.decrypted} message(s) decrypted, {report.failed} could not be decrypted")
        print(f"[+] Page written to: {args.output}")
        return EXIT_UNDECRYPTABLE if report.failed else EXIT_OK

    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
