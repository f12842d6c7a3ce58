#!/usr/bin/env python3

"""
Development utility for the PKCE OAuth Server
"""

import argparse
import asyncio
import os
import secrets
import subprocess
import sys
from pathlib import Path

import httpx

def run_command(cmd, check=True):
    """Run a command and stream its output"""
    print(f"🔧 Running: {' '.join(cmd)}")
    return subprocess.run(cmd, check=check).returncode

def generate_secret_key() -> str:
    """Generate a secure JWT signing key"""
    key = secrets.token_urlsafe(48)
    print("🔑 Generated JWT signing key:")
    print(f"   JWT_SIGNING_KEY={key}")
    print("   Store it in your secret store; never commit it.")
    return key

def check_env() -> bool:
    """Check environment configuration"""
    print("🔍 Checking environment configuration...")

    from config import Config, SAMPLE_SIGNING_KEY

    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        return False

    if config.signing_key == SAMPLE_SIGNING_KEY:
        print("⚠️  Using the sample JWT signing key - run: python dev.py secret")

    print("✅ Environment configuration looks good!")

    # Show current config (never the signing key)
    print("\n📋 Current configuration:")
    print(f"   Environment: {config.environment}")
    print(f"   Host: {config.host}")
    print(f"   Port: {config.port}")
    print(f"   Issuer: {config.issuer}")
    print(f"   Audience: {config.audience}")
    print(f"   Client ID: {config.default_client_id}")
    print(f"   Token TTL: {config.access_token_ttl}s, code TTL: {config.code_ttl}s")
    return True

def run_server():
    """Run development server"""
    print("🚀 Starting development server...")
    os.environ.setdefault("ENVIRONMENT", "development")
    return run_command([sys.executable, "-m", "uvicorn", "main:app", "--reload", "--port", os.getenv("PORT", "8000")])

def run_tests():
    """Run unit tests"""
    print("🧪 Running tests...")
    return run_command([sys.executable, "-m", "pytest", "tests"], check=False)

def run_smoke(url: str):
    """Run smoke tests against a running server"""
    return run_command([sys.executable, "test_server.py", "--url", url], check=False)

def status(url: str) -> bool:
    """Show server status"""
    print("📊 Server Status:")

    async def check_health():
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{url}/health", timeout=5)
            return response.json()

    try:
        health = asyncio.run(check_health())
    except httpx.HTTPError:
        print("❌ Local server is not running")
        return False

    print("✅ Local server is running")
    print(f"   Status: {health.get('status')}")
    print(f"   Version: {health.get('version')}")
    print(f"   Environment: {health.get('environment')}")
    return True

def main():
    """Main CLI interface"""
    parser = argparse.ArgumentParser(
        description="Development utility for the PKCE OAuth Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Available commands:
  run         Run development server
  test        Run unit tests
  smoke       Run smoke tests against a running server
  secret      Generate secure JWT signing key
  check       Check environment configuration
  status      Show server status

Examples:
  python dev.py run          # Run development server
  python dev.py test         # Run tests
  python dev.py smoke        # Exercise the PKCE flow end to end
        """
    )

    parser.add_argument(
        "command",
        choices=["run", "test", "smoke", "secret", "check", "status"],
        help="Command to execute"
    )
    parser.add_argument("--url", default="http://localhost:8000", help="Server base URL")

    args = parser.parse_args()

    # Change to script directory
    os.chdir(Path(__file__).parent)

    print("🛠️  PKCE OAuth Server - Development Utility")
    print("=" * 60)

    if args.command == "run":
        return run_server()

    elif args.command == "test":
        return run_tests()

    elif args.command == "smoke":
        return run_smoke(args.url)

    elif args.command == "secret":
        generate_secret_key()

    elif args.command == "check":
        return 0 if check_env() else 1

    elif args.command == "status":
        return 0 if status(args.url) else 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
