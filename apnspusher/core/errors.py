from __future__ import annotations


class ApnsPusherError(Exception):
    """Base error for apnspusher."""


class ValidationError(ApnsPusherError):
    """Missing or malformed send input; aborts before any network call."""


class MissingTopic(ValidationError):
    """No apns-topic was given and none could be derived."""


class MissingDeviceTokens(ValidationError):
    """The device token list is empty."""


class InvalidIdentifier(ValidationError):
    """Key ID or team ID is not exactly 10 characters."""


class InvalidPriority(ValidationError):
    """Priority outside the values APNs accepts."""


class InvalidPushType(ValidationError):
    """Push type outside the fixed apns-push-type set."""


class MissingCredentialFile(ValidationError):
    """No signing key or certificate path was configured."""


class InvalidHeaderValue(ValidationError):
    """Topic or collapse ID cannot be sent as an HTTP header value."""


class CredentialError(ApnsPusherError):
    """Credential material could not be loaded or used."""


class CredentialFileError(CredentialError):
    """Key or certificate file could not be read."""


class InvalidKeyFormat(CredentialError):
    """Signing key file lacks the PKCS#8 PEM markers."""


class InvalidCertificate(CredentialError):
    """Certificate is unparseable or not an APNs client certificate."""


class IdentityCreationFailed(CredentialError):
    """No private key matching the certificate was found in the identity store."""


class SigningError(CredentialError):
    """Bearer token could not be signed with the configured key."""


class PayloadError(ApnsPusherError):
    """Notification payload failure."""


class InvalidPayload(PayloadError):
    """Payload text is not a JSON object."""


class DeliveryError(ApnsPusherError):
    """Failure scoped to a single device token."""


class TransportError(DeliveryError):
    """Connection failed or no response was received."""


class ServerError(DeliveryError):
    """APNs answered with a non-200 status."""

    def __init__(self, status_code: int, reason: str, apns_id: str | None = None) -> None:
        super().__init__(reason)
        self.status_code = status_code
        self.reason = reason
        self.apns_id = apns_id
