# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Identity provider integration: token cache and merchant API client."""

from visleg.provider.client import ProviderIdentity, VerificationClient
from visleg.provider.http import close_http_client, get_http_client, reset_http_client
from visleg.provider.token import TokenCache, purge_expired_tokens
