"""
Encoding of session sets for storage in Redis.

A session set is stored as one JSON document per (guard, identity)::

    {"version": 1, "sessions": [{"access_token": "...", ...}, ...]}

The order of ``sessions`` is the insertion order of the logins. Decoding is
strict: a document with an unknown version, a record with missing or extra
fields, or a field of the wrong type raises :class:`.CorruptSessionData`
rather than being partially loaded.
"""

import json
from typing import Any, List, Optional, Union

from ...domain import SessionRecord
from ...exceptions import CorruptSessionData

VERSION = 1

FIELDS = {
    'access_token': str,
    'refresh_token': str,
    'client_type': str,
    'access_issued_at': int,
    'access_ttl': int,
    'refresh_issued_at': int,
    'refresh_ttl': int,
}


def encode(sessions: List[SessionRecord]) -> str:
    """Serialize a session set."""
    return json.dumps({
        'version': VERSION,
        'sessions': [record._asdict() for record in sessions]
    }, separators=(',', ':'))


def decode(raw: Optional[Union[str, bytes]]) -> Optional[List[SessionRecord]]:
    """
    Deserialize a session set.

    Parameters
    ----------
    raw : str or bytes or None
        The value read from the store.

    Returns
    -------
    list or None
        ``None`` if there is no stored set.

    Raises
    ------
    :class:`.CorruptSessionData`

    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptSessionData('Session set is not UTF-8') from e
    try:
        data = json.loads(raw)
    except json.decoder.JSONDecodeError as e:
        raise CorruptSessionData('Session set is not valid JSON') from e

    if not isinstance(data, dict) or data.get('version') != VERSION:
        raise CorruptSessionData('Unknown session set version')
    sessions = data.get('sessions')
    if not isinstance(sessions, list):
        raise CorruptSessionData('Session set has no session list')
    return [_load_record(item) for item in sessions]


def _load_record(item: Any) -> SessionRecord:
    if not isinstance(item, dict) or set(item) != set(FIELDS):
        raise CorruptSessionData('Session record has unexpected fields')
    for field, kind in FIELDS.items():
        # bool is an int subclass, but never a valid value here.
        if not isinstance(item[field], kind) or isinstance(item[field], bool):
            raise CorruptSessionData(f'Session record field {field} is bad')
    return SessionRecord(**item)
