"""
Outbound Interceptor
Encrypts the message box in place when the trigger key is pressed and keeps
the staged ciphertext from being edited or shown until it is sent
"""

import message_codec
from session import InterceptorState

TRIGGER_KEY = message_codec.MARKER
COMMIT_KEY = 'Enter'
DELETE_KEY = 'Backspace'
RESET_KEY = 'Control'

PENDING_LABEL = '[Encrypted, press enter]'


class OutboundInterceptor:
    """Two-state keystroke machine: IDLE -> ARMED on the trigger key"""

    def __init__(self, codec=message_codec):
        self.codec = codec

    def on_key(self, key, session, text_input):
        """
        Handle one keydown

        Args:
            key (str): Key name ('§', 'Enter', 'Backspace', 'Control', 'a', ...)
            session (SessionContext): Current session
            text_input: Primary message box (anything with a `value`)

        Returns:
            bool: False if the keystroke must be suppressed
        """
        if key == RESET_KEY:
            session.interceptor_state = InterceptorState.IDLE
            session.pending_send = False
            return True

        if session.interceptor_state == InterceptorState.ARMED:
            # staged text is already ciphertext; a typed trigger would corrupt it
            if key not in (COMMIT_KEY, DELETE_KEY):
                return False

        if key == TRIGGER_KEY:
            # the host must not append the trigger after the closing marker
            return not self._arm(session, text_input)

        if key == COMMIT_KEY:
            session.pending_send = False
        session.interceptor_state = InterceptorState.IDLE
        return True

    def _arm(self, session, text_input):
        plaintext = text_input.value
        if not plaintext.strip():
            return False
        transport = self.codec.encode(plaintext, session.passphrase)
        text_input.value = message_codec.wrap_marker(transport)
        session.pending_send = True
        session.interceptor_state = InterceptorState.ARMED
        return True


def mask_pending_inputs(session, text_inputs, label=PENDING_LABEL):
    """
    Show a placeholder label in every text input while a send is pending

    Returns:
        int: Number of inputs masked on this call
    """
    if not session.pending_send:
        return 0
    masked = 0
    for text_input in text_inputs:
        if text_input.masked:
            continue
        text_input.mask(label)
        masked += 1
    return masked
