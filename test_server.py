#!/usr/bin/env python3

"""
Smoke test script for the PKCE OAuth Server
Runs the full OAuth 2.1 PKCE flow against a live server
"""

import asyncio
import sys
from typing import Optional

import httpx

from oauth_client import OAuthClient, OAuthClientError

class OAuthServerTester:
    def __init__(self, base_url: str = "http://localhost:8000",
                 client_id: str = "mcp-sample-client",
                 redirect_uri: str = "http://localhost:8080/callback"):
        self.base_url = base_url.rstrip("/")
        self.redirect_uri = redirect_uri
        self.client = httpx.AsyncClient(timeout=30.0)
        self.oauth = OAuthClient(self.base_url, client_id, http_client=self.client)
        self.access_token: Optional[str] = None

    async def close(self):
        await self.client.aclose()

    async def test_health_check(self) -> bool:
        """Test health check endpoint"""
        print("🏥 Testing health check...")
        try:
            response = await self.client.get(f"{self.base_url}/health")
            if response.status_code == 200:
                print(f"   ✅ Health check passed: {response.json()['status']}")
                return True
            print(f"   ❌ Health check failed: {response.status_code}")
            return False
        except httpx.HTTPError as e:
            print(f"   ❌ Health check error: {e}")
            return False

    async def test_oauth_metadata(self) -> bool:
        """Test OAuth authorization server metadata"""
        print("🔍 Testing OAuth metadata...")
        data = await self.oauth.get_discovery_info()
        if data is None:
            print("   ❌ OAuth metadata unavailable")
            return False

        required_fields = ["issuer", "authorization_endpoint", "token_endpoint",
                           "code_challenge_methods_supported"]
        missing = [field for field in required_fields if field not in data]
        if missing:
            print(f"   ⚠️  Missing fields: {missing}")
            return False

        print(f"   ✅ OAuth metadata available, issuer {data['issuer']}")
        return True

    async def test_unauthorized_access(self) -> bool:
        """Test that the protected resource requires a bearer token"""
        print("🚫 Testing unauthorized access...")
        try:
            response = await self.client.get(f"{self.base_url}/api/whoami")
            if response.status_code == 401:
                print("   ✅ Protected resource properly requires authentication")
                return True
            print(f"   ❌ Protected resource should return 401, got {response.status_code}")
            return False
        except httpx.HTTPError as e:
            print(f"   ❌ Unauthorized access test error: {e}")
            return False

    async def test_pkce_flow(self) -> bool:
        """Test the full authorization code flow with PKCE"""
        print("🔐 Testing OAuth 2.1 PKCE flow...")
        try:
            token = await self.oauth.run_pkce_flow(self.redirect_uri)
            self.access_token = token.access_token
            print(f"   ✅ Token issued: {token.token_type}, expires in {token.expires_in}s")
            return True
        except (OAuthClientError, httpx.HTTPError) as e:
            print(f"   ❌ PKCE flow failed: {e}")
            return False

    async def test_authorized_access(self) -> bool:
        """Test the protected resource with the issued token"""
        print("🛡️  Testing authorized access...")
        if not self.access_token:
            print("   ⚠️  No access token available, skipping")
            return False

        response = await self.client.get(
            f"{self.base_url}/api/whoami",
            headers={"Authorization": f"Bearer {self.access_token}"}
        )
        if response.status_code == 200:
            print(f"   ✅ Accessed protected resource as {response.json()['sub']}")
            return True
        print(f"   ❌ Protected resource returned {response.status_code}")
        return False

    async def test_code_replay(self) -> bool:
        """Test that an authorization code cannot be redeemed twice"""
        print("🔁 Testing authorization code replay...")
        try:
            verifier, challenge = self.oauth.generate_pkce_challenge()
            code = await self.oauth.authorize(self.redirect_uri, "replay-state", challenge)
            await self.oauth.exchange_code_for_token(code, self.redirect_uri, verifier)
        except (OAuthClientError, httpx.HTTPError) as e:
            print(f"   ❌ First redemption failed: {e}")
            return False

        try:
            await self.oauth.exchange_code_for_token(code, self.redirect_uri, verifier)
        except OAuthClientError as e:
            if e.error and e.error.error == "invalid_grant":
                print("   ✅ Replayed code rejected with invalid_grant")
                return True
            print(f"   ❌ Unexpected replay error: {e}")
            return False

        print("   ❌ Replayed code was accepted")
        return False

    async def run_all_tests(self) -> bool:
        """Run all tests and return overall success"""
        print("🧪 Starting OAuth Server Tests...")
        print(f"🎯 Target: {self.base_url}")
        print("=" * 50)

        tests = [
            ("Health Check", self.test_health_check),
            ("OAuth Metadata", self.test_oauth_metadata),
            ("Unauthorized Access", self.test_unauthorized_access),
            ("PKCE Flow", self.test_pkce_flow),
            ("Authorized Access", self.test_authorized_access),
            ("Code Replay", self.test_code_replay),
        ]

        results = []

        for test_name, test_func in tests:
            try:
                result = await test_func()
                results.append(result)
                print()
            except Exception as e:
                print(f"   ❌ {test_name} failed with exception: {e}")
                results.append(False)
                print()

        passed = sum(results)
        total = len(results)

        print("=" * 50)
        print(f"📊 Test Results: {passed}/{total} passed")

        if passed == total:
            print("🎉 All tests passed!")
            return True
        print("⚠️  Some tests failed. Please check the configuration.")
        return False

async def main():
    """Main test function"""
    import argparse

    parser = argparse.ArgumentParser(description="Smoke test the PKCE OAuth Server")
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Base URL of the server (default: http://localhost:8000)"
    )
    parser.add_argument("--client-id", default="mcp-sample-client", help="Client ID to authorize as")
    parser.add_argument("--redirect-uri", default="http://localhost:8080/callback", help="Redirect URI")

    args = parser.parse_args()

    tester = OAuthServerTester(args.url, args.client_id, args.redirect_uri)

    try:
        success = await tester.run_all_tests()
        sys.exit(0 if success else 1)
    finally:
        await tester.close()

if __name__ == "__main__":
    asyncio.run(main())
