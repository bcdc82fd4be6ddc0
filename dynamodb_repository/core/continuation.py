"""
Continuation token codec.

A page token is the store's resume handle (DynamoDB's LastEvaluatedKey)
serialized to compact, key-sorted JSON, UTF-8 encoded, then base64 encoded.
Callers treat it as opaque and hand it back verbatim.

Decoding then re-encoding a token yields the identical string.
"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from ..exceptions import ContinuationTokenError


def encode_continuation_token(resume_handle: Optional[Dict[str, Any]]) -> Optional[str]:
    """Encode a resume handle; None (query exhausted) encodes to None."""
    if resume_handle is None:
        return None

    serialized = json.dumps(resume_handle, sort_keys=True, separators=(',', ':'))
    return base64.b64encode(serialized.encode('utf-8')).decode('ascii')


def decode_continuation_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a page token back into a resume handle.

    Empty or None means "start from the beginning".

    Raises:
        ContinuationTokenError: If the token is not a token this module produced
    """
    if not token:
        return None

    try:
        raw = base64.b64decode(token.encode('ascii'), validate=True)
        resume_handle = json.loads(raw.decode('utf-8'))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ContinuationTokenError(token, original_error=e) from e

    if not isinstance(resume_handle, dict):
        raise ContinuationTokenError(token)

    return resume_handle
