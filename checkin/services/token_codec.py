"""Signed attendance token codec."""
import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import jwt

from checkin.utils.errors import CheckinError, ErrorKind
from checkin.utils.helpers import utcnow, to_epoch, from_epoch

ALGORITHM = 'HS256'
REQUIRED_CLAIMS = ('subject_kind', 'subject_id', 'iat', 'exp')
RESERVED_CLAIMS = ('iat', 'exp', 'jti', 'issued_at', 'expires_at')

def hash_token(token: str) -> str:
    """Persisted form of a token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()

def key_id(key: str) -> str:
    """Stable identifier for a signing key that does not leak it."""
    return hashlib.sha256(key.encode('utf-8')).hexdigest()[:16]

class TokenCodec:
    """Issue and verify compact HS256 tokens.

    Signs with the newest key (``keys[0]``); verification accepts any
    configured key so tokens survive a key rotation until they expire.
    Stateless: all single-use bookkeeping lives in the store.
    """

    def __init__(self, keys: List[str]):
        keys = [key for key in keys if key]
        if not keys:
            raise ValueError('At least one token signing key is required')
        self._keys = {key_id(key): key for key in keys}
        self._signing_kid = key_id(keys[0])

    @classmethod
    def from_config(cls, config) -> 'TokenCodec':
        return cls(list(config['TOKEN_SIGNING_KEYS']))

    @staticmethod
    def expiry(ttl: timedelta, now: datetime) -> datetime:
        """Absolute expiry embedded by ``issue`` for the same ``now``."""
        return from_epoch(to_epoch(now) + int(ttl.total_seconds()))

    def issue(self, claims: Dict, ttl: timedelta, now: Optional[datetime] = None) -> str:
        """Sign ``claims`` with an absolute expiry of ``now + ttl``."""
        if ttl.total_seconds() < 1:
            raise ValueError('Token ttl must be at least one second')
        clash = [name for name in RESERVED_CLAIMS if name in claims]
        if clash:
            raise ValueError(f'Reserved claim(s) supplied: {", ".join(clash)}')

        now = now or utcnow()
        payload = dict(claims)
        payload['iat'] = to_epoch(now)
        payload['exp'] = to_epoch(self.expiry(ttl, now))
        payload['jti'] = secrets.token_hex(8)

        return jwt.encode(
            payload,
            self._keys[self._signing_kid],
            algorithm=ALGORITHM,
            headers={'kid': self._signing_kid}
        )

    def verify(self, token: str, now: Optional[datetime] = None) -> Dict:
        """Return the issued claims plus ``issued_at``/``expires_at``.

        Raises CheckinError with MALFORMED, BAD_SIGNATURE or EXPIRED.
        """
        if not isinstance(token, str) or not token:
            raise CheckinError(ErrorKind.MALFORMED, 'Token is missing')

        try:
            header = jwt.get_unverified_header(token)
        except jwt.DecodeError:
            raise CheckinError(ErrorKind.MALFORMED, 'Token structure is invalid')

        if header.get('alg') != ALGORITHM:
            raise CheckinError(ErrorKind.MALFORMED, 'Unsupported token algorithm')

        payload = self._decode(token, header.get('kid'))

        missing = [name for name in REQUIRED_CLAIMS if name not in payload]
        if missing:
            raise CheckinError(ErrorKind.MALFORMED, f'Token missing claim(s): {", ".join(missing)}')

        try:
            issued_at = from_epoch(int(payload.pop('iat')))
            expires_at = from_epoch(int(payload.pop('exp')))
        except (TypeError, ValueError, OverflowError, OSError):
            raise CheckinError(ErrorKind.MALFORMED, 'Token timestamps are invalid')

        if expires_at <= issued_at:
            raise CheckinError(ErrorKind.MALFORMED, 'Token expires before it was issued')

        # Wall clock of the caller, never the issuer's
        if (now or utcnow()) >= expires_at:
            raise CheckinError(ErrorKind.EXPIRED, 'Token has expired')

        payload.pop('jti', None)
        payload['issued_at'] = issued_at
        payload['expires_at'] = expires_at
        return payload

    def _decode(self, token: str, kid: Optional[str]) -> Dict:
        candidates = list(self._keys.values())
        if kid in self._keys:
            candidates.remove(self._keys[kid])
            candidates.insert(0, self._keys[kid])

        options = {
            'verify_exp': False,
            'verify_iat': False,
            'verify_nbf': False,
        }
        for key in candidates:
            try:
                return jwt.decode(token, key, algorithms=[ALGORITHM], options=options)
            except jwt.InvalidSignatureError:
                continue
            except jwt.InvalidTokenError:
                raise CheckinError(ErrorKind.MALFORMED, 'Token payload is invalid')

        raise CheckinError(ErrorKind.BAD_SIGNATURE, 'Token signature does not match')
