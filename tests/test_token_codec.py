"""Tests for the signed token codec."""
from datetime import datetime, timedelta

import jwt
import pytest

from checkin.services.token_codec import TokenCodec, hash_token, key_id
from checkin.utils.errors import CheckinError, ErrorKind

OLD_KEY = 'old-signing-key-0000-abcdefghijklmnopq'
NEW_KEY = 'new-signing-key-0001-abcdefghijklmnopq'
NOW = datetime(2026, 10, 19, 9, 30, 0)

CLAIMS = {
    'subject_kind': 'student',
    'subject_id': 7,
    'session_id': None,
    'issuer_id': 3,
}

@pytest.fixture
def codec():
    return TokenCodec([NEW_KEY, OLD_KEY])

def _error_kind(codec, token, now=NOW):
    with pytest.raises(CheckinError) as exc:
        codec.verify(token, now=now)
    return exc.value.kind

def test_round_trip_returns_claims_with_times(codec):
    """Verifying an issued token gives back the claims plus its window."""
    token = codec.issue(CLAIMS, timedelta(hours=4), now=NOW)

    claims = codec.verify(token, now=NOW + timedelta(hours=1))

    assert claims.pop('issued_at') == NOW
    assert claims.pop('expires_at') == NOW + timedelta(hours=4)
    assert claims == CLAIMS

def test_expiry_helper_matches_embedded_expiry(codec):
    token = codec.issue(CLAIMS, timedelta(minutes=90), now=NOW)

    assert codec.verify(token, now=NOW)['expires_at'] == TokenCodec.expiry(timedelta(minutes=90), NOW)

def test_expired_exactly_at_expiry(codec):
    token = codec.issue(CLAIMS, timedelta(hours=1), now=NOW)

    assert codec.verify(token, now=NOW + timedelta(minutes=59, seconds=59))
    assert _error_kind(codec, token, now=NOW + timedelta(hours=1)) == ErrorKind.EXPIRED
    assert _error_kind(codec, token, now=NOW + timedelta(days=3)) == ErrorKind.EXPIRED

def test_each_issue_produces_a_distinct_token(codec):
    first = codec.issue(CLAIMS, timedelta(hours=1), now=NOW)
    second = codec.issue(CLAIMS, timedelta(hours=1), now=NOW)

    assert first != second
    assert hash_token(first) != hash_token(second)

def test_tampered_payload_fails_signature(codec):
    token = codec.issue(CLAIMS, timedelta(hours=1), now=NOW)
    header, payload, signature = token.split('.')
    forged = jwt.encode(
        {**CLAIMS, 'subject_id': 8, 'iat': 0, 'exp': 9999999999},
        'attacker-key-with-enough-length-000000',
        algorithm='HS256'
    ).split('.')[1]

    assert _error_kind(codec, f'{header}.{forged}.{signature}') == ErrorKind.BAD_SIGNATURE

def test_token_from_unknown_key_fails_signature(codec):
    stranger = TokenCodec(['unrelated-key-0002-abcdefghijklmnopqrs'])
    token = stranger.issue(CLAIMS, timedelta(hours=1), now=NOW)

    assert _error_kind(codec, token) == ErrorKind.BAD_SIGNATURE

@pytest.mark.parametrize('token', ['', 'not-a-token', 'a.b', 'a.b.c', 12345])
def test_unparseable_tokens_are_malformed(codec, token):
    assert _error_kind(codec, token) == ErrorKind.MALFORMED

def test_missing_claims_are_malformed(codec):
    token = jwt.encode({'subject_kind': 'student', 'iat': 1, 'exp': 9999999999},
                       NEW_KEY, algorithm='HS256', headers={'kid': key_id(NEW_KEY)})

    assert _error_kind(codec, token) == ErrorKind.MALFORMED

def test_unsigned_token_is_rejected(codec):
    token = jwt.encode({**CLAIMS, 'iat': 1, 'exp': 9999999999}, None, algorithm='none')

    assert _error_kind(codec, token) == ErrorKind.MALFORMED

def test_signs_with_newest_key(codec):
    token = codec.issue(CLAIMS, timedelta(hours=1), now=NOW)

    assert jwt.get_unverified_header(token)['kid'] == key_id(NEW_KEY)
    with pytest.raises(CheckinError):
        TokenCodec([OLD_KEY]).verify(token, now=NOW)

def test_accepts_tokens_signed_with_older_key(codec):
    token = TokenCodec([OLD_KEY]).issue(CLAIMS, timedelta(hours=1), now=NOW)

    assert codec.verify(token, now=NOW)['subject_id'] == 7

def test_reserved_claims_cannot_be_supplied(codec):
    with pytest.raises(ValueError):
        codec.issue({**CLAIMS, 'exp': 1}, timedelta(hours=1), now=NOW)

def test_requires_a_key():
    with pytest.raises(ValueError):
        TokenCodec([])
