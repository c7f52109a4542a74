"""
Storage layer for the pairing service.

In-memory stores for live state, plus the on-disk session metadata.
"""

from pairing.repos.otp_repo import OtpStore
from pairing.repos.pairing_repo import SessionRegistry
from pairing.repos.session_meta_repo import SessionMetaRepo

__all__ = [
    "OtpStore",
    "SessionRegistry",
    "SessionMetaRepo",
]
