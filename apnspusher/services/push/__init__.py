from apnspusher.services.push.dispatcher import Dispatcher, UNKNOWN_REASON, extract_reason
from apnspusher.services.push.request_builder import RequestBuilder, canonicalize_payload, device_url
from apnspusher.services.push.session import DEFAULT_PAYLOAD, PreparedSend, PushSession
from apnspusher.services.push.transport import TransportAuthenticator

__all__ = [
    "DEFAULT_PAYLOAD",
    "Dispatcher",
    "PreparedSend",
    "PushSession",
    "RequestBuilder",
    "TransportAuthenticator",
    "UNKNOWN_REASON",
    "canonicalize_payload",
    "device_url",
    "extract_reason",
]
