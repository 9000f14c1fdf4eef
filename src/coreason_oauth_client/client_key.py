# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

"""
Client identity and the form fields it contributes to token requests.
"""

import time
import uuid

from authlib.common.encoding import to_unicode, urlsafe_b64encode
from authlib.jose import jwt
from authlib.jose.errors import JoseError
from pydantic import BaseModel, ConfigDict

from coreason_oauth_client.exceptions import ClientError, ErrorCode
from coreason_oauth_client.models import CLIENT_ASSERTION_TYPE, ClientCertificate, ClientCredential

ASSERTION_LIFETIME_SECONDS = 600


def build_client_assertion(client_id: str, certificate: ClientCertificate, audience: str) -> str:
    """
    Signs an RS256 client assertion JWT for certificate authentication.

    Args:
        client_id: Used as ``iss`` and ``sub``.
        certificate: Private key and thumbprint.
        audience: Token audience, normally the issuer of the authority.

    Returns:
        The compact serialized JWT.

    Raises:
        ClientError: If the private key cannot be used for signing.
    """
    header = {
        "alg": "RS256",
        "typ": "JWT",
        "x5t": to_unicode(urlsafe_b64encode(bytes.fromhex(certificate.thumbprint))),
    }
    now = int(time.time())
    claims = {
        "aud": audience,
        "iss": client_id,
        "sub": client_id,
        "jti": str(uuid.uuid4()),
        "nbf": now,
        "exp": now + ASSERTION_LIFETIME_SECONDS,
    }
    try:
        token = jwt.encode(header, claims, certificate.private_key_pem.get_secret_value())
    except (JoseError, ValueError, TypeError) as e:
        raise ClientError(f"Unable to sign client assertion: {e}", ErrorCode.INVALID_REQUEST) from e
    return to_unicode(token)


class ClientKey(BaseModel):
    """
    The client id plus, for confidential clients, its credential.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    credential: ClientCredential | None = None

    @property
    def has_credential(self) -> bool:
        return self.credential is not None

    def authentication_fields(self, audience: str) -> dict[str, str]:
        """
        Form fields authenticating the client at the token endpoint.

        Args:
            audience: Audience for a certificate based client assertion.
        """
        fields = {"client_id": self.client_id}
        credential = self.credential
        if credential is None:
            return fields

        if credential.secret is not None:
            fields["client_secret"] = credential.secret.get_secret_value()
        elif credential.assertion is not None:
            fields["client_assertion_type"] = CLIENT_ASSERTION_TYPE
            fields["client_assertion"] = credential.assertion.get_secret_value()
        elif credential.certificate is not None:
            fields["client_assertion_type"] = CLIENT_ASSERTION_TYPE
            fields["client_assertion"] = build_client_assertion(self.client_id, credential.certificate, audience)
        return fields
