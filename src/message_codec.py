"""
Message Codec
AES-256-CBC in OpenSSL passphrase mode ("Salted__" + salt + ciphertext, Base64)

The transport format is the one produced by CryptoJS.AES.encrypt(text, passphrase)
and `openssl enc -aes-256-cbc -md md5 -base64`, so messages interoperate with
the browser version of the overlay.
"""

import base64
import binascii
import hashlib
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

MAGIC = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
BLOCK_SIZE = 16

# Reserved delimiter around the transport string in rendered text; it is not
# part of the Base64 alphabet
MARKER = "§"


@dataclass(frozen=True)
class Decoded:
    """Successful decode"""
    plaintext: str

    ok = True


@dataclass(frozen=True)
class DecodeFailure:
    """Wrong or missing key, corrupt or truncated ciphertext"""
    reason: str

    ok = False


def evp_bytes_to_key(passphrase, salt, key_size=KEY_SIZE, iv_size=IV_SIZE):
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration"""
    password = passphrase.encode('utf-8')
    derived = b''
    block = b''
    while len(derived) < key_size + iv_size:
        block = hashlib.md5(block + password + salt).digest()
        derived += block
    return derived[:key_size], derived[key_size:key_size + iv_size]


def encode(plaintext, passphrase):
    """
    Encrypt plaintext to a transport string

    Args:
        plaintext (str): Message text
        passphrase (str): Session passphrase

    Returns:
        str: Base64 of MAGIC + random salt + AES-256-CBC ciphertext
    """
    salt = os.urandom(SALT_SIZE)
    key, iv = evp_bytes_to_key(passphrase, salt)

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext.encode('utf-8')) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(MAGIC + salt + ciphertext).decode('ascii')


def decode(transport, passphrase):
    """
    Decrypt a transport string

    Never raises: every way the input or the key can be wrong comes back as
    a DecodeFailure. An empty plaintext is a failure too, since real messages
    are never empty and a wrong key occasionally yields valid padding over
    nothing.

    Returns:
        Decoded or DecodeFailure
    """
    try:
        raw = base64.b64decode(transport.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        return DecodeFailure(f"invalid base64: {e}")

    if not raw.startswith(MAGIC):
        return DecodeFailure("missing salt header")

    salt = raw[len(MAGIC):len(MAGIC) + SALT_SIZE]
    ciphertext = raw[len(MAGIC) + SALT_SIZE:]
    if len(salt) < SALT_SIZE or not ciphertext or len(ciphertext) % BLOCK_SIZE:
        return DecodeFailure("truncated ciphertext")

    key, iv = evp_bytes_to_key(passphrase, salt)
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        return DecodeFailure(f"bad padding: {e}")

    try:
        plaintext = data.decode('utf-8')
    except UnicodeDecodeError:
        return DecodeFailure("plaintext is not valid UTF-8")

    if not plaintext:
        return DecodeFailure("empty plaintext")

    return Decoded(plaintext)


def wrap_marker(transport):
    return f"{MARKER}{transport}{MARKER}"


def unwrap_marker(text):
    """
    Extract the transport string from marker-delimited rendered text

    Returns:
        str: Text between the delimiters, or None if text is not a marker
    """
    if text is None:
        return None
    text = text.strip()
    if len(text) < 3 or text[0] != MARKER or text[-1] != MARKER:
        return None
    return text[1:-1]
