"""LeadBoard — Lead Identity Hashing.

The messaging sources never expose a real phone number, so a lead's natural
key is derived from (platform, lead name, message timestamp).
"""

import hashlib
import time
from uuid import uuid4

PHONE_HASH_LENGTH = 15
TRANSACTION_SUFFIX_LENGTH = 8


def lead_phone_hash(platform: str, lead_name: str, message_at: str) -> str:
    """Return the 15-char lowercase hex surrogate key for a lead."""
    digest = hashlib.md5((platform + lead_name + message_at).encode("utf-8")).hexdigest()
    return digest[:PHONE_HASH_LENGTH]


def transaction_id(prefix: str, phone: str) -> str:
    """Build ``<prefix>-<phone>-<epoch millis>-<random hex>``.

    The random tail keeps two writes of the same lead in the same
    millisecond apart.
    """
    suffix = uuid4().hex[:TRANSACTION_SUFFIX_LENGTH]
    return f"{prefix}-{phone}-{int(time.time() * 1000)}-{suffix}"
