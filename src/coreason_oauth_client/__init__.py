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
Client-side OAuth2/OIDC token acquisition: authority resolution, endpoint discovery and grant flows.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .application import (
    ConfidentialClientApplication,
    ConfidentialClientApplicationAsync,
    PublicClientApplication,
    PublicClientApplicationAsync,
)
from .authority import Authority, AuthorityType, canonicalize_authority, resolve_authority
from .cache import MemoryTokenCache, TokenCacheKey, TokenCacheProtocol
from .config import CoreasonOAuthConfig
from .discovery import AuthorityCache, resolve_endpoints
from .exceptions import ClientError, CoreasonOAuthError, NetworkError, ServiceError, UserCanceledError
from .interactive import InteractiveExecutor, WebUI
from .models import (
    AuthenticationResult,
    AuthorizationResult,
    AuthorizationStatus,
    ClientCertificate,
    ClientCredential,
    UIBehavior,
    User,
    UserAssertion,
)

__all__ = [
    "AuthenticationResult",
    "Authority",
    "AuthorityCache",
    "AuthorityType",
    "AuthorizationResult",
    "AuthorizationStatus",
    "ClientCertificate",
    "ClientCredential",
    "ClientError",
    "ConfidentialClientApplication",
    "ConfidentialClientApplicationAsync",
    "CoreasonOAuthConfig",
    "CoreasonOAuthError",
    "InteractiveExecutor",
    "MemoryTokenCache",
    "NetworkError",
    "PublicClientApplication",
    "PublicClientApplicationAsync",
    "ServiceError",
    "TokenCacheKey",
    "TokenCacheProtocol",
    "UIBehavior",
    "User",
    "UserAssertion",
    "UserCanceledError",
    "WebUI",
    "canonicalize_authority",
    "resolve_authority",
    "resolve_endpoints",
]
