"""
auth/otp.py -- Time-based one-time codes for email verification.

RFC 6238 TOTP: HMAC-SHA1 over the big-endian time-step counter, dynamic
truncation, zero-padded to Settings.otp_digits. The key is the identity's
email (lowercased) followed by the application salt, so nothing needs to be
stored: the code is recomputed on verify.

Consequences worth knowing:
  - A code is valid for its whole time step (otp_step_seconds) plus
    otp_valid_window steps on each side to absorb clock drift and mail delay.
  - Codes are not single-use. Verifying twice inside the window succeeds
    twice; the auth flow makes the second call a no-op.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

import hashlib
import hmac
import struct
import time
from typing import Optional

from core.config import get_settings

_settings = get_settings()


def _key_for(email: str) -> bytes:
    return (email.strip().lower() + _settings.otp_salt).encode("utf-8")


def _hotp(key: bytes, counter: int, digits: int) -> str:
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(code % (10**digits)).zfill(digits)


def _counter(at: Optional[float]) -> int:
    now = time.time() if at is None else at
    return int(now) // _settings.otp_step_seconds


def generate_otp(email: str, at: Optional[float] = None) -> str:
    """Return the code for email in the time step containing at (default: now)."""
    return _hotp(_key_for(email), _counter(at), _settings.otp_digits)


def verify_otp(email: str, code: str, at: Optional[float] = None) -> bool:
    """Return True if code matches the current step or one inside the drift window."""
    code = (code or "").strip()
    if len(code) != _settings.otp_digits or not (code.isascii() and code.isdigit()):
        return False
    key = _key_for(email)
    counter = _counter(at)
    window = _settings.otp_valid_window
    for step in range(counter - window, counter + window + 1):
        if hmac.compare_digest(_hotp(key, step, _settings.otp_digits), code):
            return True
    return False
