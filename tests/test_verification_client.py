# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the merchant API client."""

import httpx
import pytest

from visleg.exceptions import VerificationProviderError
from visleg.provider.client import ProviderIdentity, VerificationClient


class TestVerificationClient:
    async def test_success(self, http_client, provider):
        client = VerificationClient(http_client)

        identity = await client.verify("VisLeg-abc123", "tok")

        assert identity == ProviderIdentity(
            first_name="KARI", last_name="NORDMANN", document_photo="aGVsbG8=", age=41
        )
        assert provider.session_requests == [{"sessionId": "VisLeg-abc123"}]
        assert provider.session_auth_headers == ["Bearer tok"]

    async def test_non_success_carries_status_and_body(self, http_client, provider):
        provider.session_status = 404
        client = VerificationClient(http_client)

        with pytest.raises(VerificationProviderError) as exc_info:
            await client.verify("VisLeg-abc123", "tok")

        assert exc_info.value.status == 404
        assert exc_info.value.body == "session rejected"
        assert exc_info.value.code == "VERIFICATION_FAILED"
        assert not exc_info.value.is_auth_failure

    async def test_unauthorized_is_auth_failure(self, http_client, provider):
        provider.session_status = 401
        client = VerificationClient(http_client)

        with pytest.raises(VerificationProviderError) as exc_info:
            await client.verify("VisLeg-abc123", "tok")

        assert exc_info.value.is_auth_failure
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "AUTH_FAILED"

    async def test_transport_error(self, http_client, provider):
        provider.fail_transport = True
        client = VerificationClient(http_client)

        with pytest.raises(VerificationProviderError) as exc_info:
            await client.verify("VisLeg-abc123", "tok")

        assert exc_info.value.status is None
        assert exc_info.value.reason == "transport"

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(VerificationProviderError) as exc_info:
                await VerificationClient(http, base_url="https://m.test").verify("VisLeg-x1", "t")

        assert exc_info.value.reason == "timeout"

    async def test_malformed_body(self, http_client, provider):
        provider.identities["VisLeg-broken"] = {"unexpected": True}
        client = VerificationClient(http_client)

        with pytest.raises(VerificationProviderError) as exc_info:
            await client.verify("VisLeg-broken", "tok")

        assert exc_info.value.reason == "malformed"

    async def test_missing_photo_and_age(self, http_client, provider):
        provider.identities["VisLeg-min"] = {"firstName": "OLA", "lastName": "NORDMANN"}

        identity = await VerificationClient(http_client).verify("VisLeg-min", "tok")

        assert identity.document_photo == ""
        assert identity.age is None

    def test_base_url_trailing_slash(self, http_client):
        client = VerificationClient(http_client, base_url="https://m.test/")
        assert client.session_url == "https://m.test/api/merchant/session"
