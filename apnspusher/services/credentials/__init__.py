from apnspusher.services.credentials.cache import SignatureCache
from apnspusher.services.credentials.identity_store import (
    DirectoryIdentityStore,
    IdentityStore,
    InMemoryIdentityStore,
)
from apnspusher.services.credentials.resolver import (
    APNS_SUBJECT_PREFIX,
    CredentialResolver,
    parse_certificate,
    topic_from_common_name,
    validate_identifiers,
)
from apnspusher.services.credentials.signer import sign_bearer
from apnspusher.services.credentials.timestamp import TimestampGate

__all__ = [
    "APNS_SUBJECT_PREFIX",
    "CredentialResolver",
    "DirectoryIdentityStore",
    "IdentityStore",
    "InMemoryIdentityStore",
    "SignatureCache",
    "TimestampGate",
    "parse_certificate",
    "sign_bearer",
    "topic_from_common_name",
    "validate_identifiers",
]
