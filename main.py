#!/usr/bin/env python3

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import uvicorn

from auth import AuthManager
from config import Config
from errors import OAuthError, Unauthorized
from models import (
    AccessTokenClaims,
    AuthorizationServerMetadata,
    ErrorResponse,
    HealthCheckResponse,
    TokenRequest,
    TokenResponse,
)

SERVICE_NAME = "pkce-oauth-server"
VERSION = "1.0.0"

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}

bearer_scheme = HTTPBearer(auto_error=False)


def configure_logging(config: Config):
    logging.basicConfig(level=config.log_level, format=config.log_format)


def get_auth_manager(request: Request) -> AuthManager:
    return request.app.state.auth_manager


def require_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_manager: AuthManager = Depends(get_auth_manager),
) -> AccessTokenClaims:
    """Dependency for protected resources: validated claims or 401"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized()
    return auth_manager.verify_token(credentials.credentials)


def create_app(config: Optional[Config] = None, auth_manager: Optional[AuthManager] = None) -> FastAPI:
    """Build the authorization server application"""
    config = config if config is not None else Config.from_env()
    auth_manager = auth_manager if auth_manager is not None else AuthManager(config)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME} v{VERSION}")
        logger.info(f"Environment: {config.environment}")
        logger.info(f"Issuer: {config.issuer}")

        # Start cleanup task
        cleanup_task = asyncio.create_task(auth_manager.code_store.cleanup_expired_codes())
        try:
            yield
        finally:
            logger.info(f"Shutting down {SERVICE_NAME}")
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task

    app = FastAPI(
        title="PKCE OAuth Server",
        description="OAuth 2.1 Authorization Code flow with mandatory PKCE (S256)",
        version=VERSION,
        docs_url="/docs" if config.is_development else None,
        redoc_url="/redoc" if config.is_development else None,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.auth_manager = auth_manager

    # Add security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)

        # Security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HTTPS enforcement in production
        if config.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=config.allowed_origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["WWW-Authenticate"],
    )

    @app.exception_handler(OAuthError)
    async def oauth_error_handler(request: Request, exc: OAuthError):
        headers = dict(NO_STORE_HEADERS)
        if exc.status_code == 401:
            headers["WWW-Authenticate"] = f'Bearer realm="{SERVICE_NAME}", error="{exc.error}"'
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)

    # Health and discovery endpoints
    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check():
        """Health check endpoint"""
        return HealthCheckResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=VERSION,
            timestamp=datetime.now(timezone.utc).isoformat(),
            environment=config.environment,
        )

    # OAuth 2.0 Authorization Server Metadata (RFC 8414)
    @app.get("/.well-known/oauth-authorization-server", response_model=AuthorizationServerMetadata)
    async def oauth_authorization_server_metadata(auth_manager: AuthManager = Depends(get_auth_manager)):
        """OAuth 2.1 Authorization Server Metadata"""
        return auth_manager.metadata()

    # OAuth Authorization endpoint
    @app.get("/oauth/authorize", status_code=302, responses={400: {"model": ErrorResponse}})
    async def oauth_authorize(
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        response_type: Optional[str] = None,
        scope: str = "",
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
        auth_manager: AuthManager = Depends(get_auth_manager),
    ):
        """OAuth 2.1 Authorization endpoint with PKCE; auto-approves valid requests"""
        try:
            _, redirect_url = auth_manager.create_authorization(
                client_id=client_id,
                redirect_uri=redirect_uri,
                response_type=response_type,
                scope=scope,
                state=state,
                code_challenge=code_challenge,
                code_challenge_method=code_challenge_method,
            )
            return RedirectResponse(url=redirect_url, status_code=302)

        except OAuthError as e:
            logger.info(f"Authorization request rejected: {e.error}")
            raise
        except Exception as e:
            logger.error(f"Authorization error: {e}")
            raise HTTPException(status_code=500, detail="Authorization failed")

    # OAuth Token endpoint
    @app.post("/oauth/token", response_model=TokenResponse, responses={400: {"model": ErrorResponse}})
    async def oauth_token(request: Request, auth_manager: AuthManager = Depends(get_auth_manager)):
        """OAuth 2.1 Token endpoint with PKCE verification"""
        try:
            form_data = await request.form()
            token_request = TokenRequest(
                grant_type=form_data.get("grant_type"),
                code=form_data.get("code"),
                redirect_uri=form_data.get("redirect_uri"),
                client_id=form_data.get("client_id"),
                code_verifier=form_data.get("code_verifier"),
            )

            token_response = auth_manager.exchange_code_for_token(token_request)
            return JSONResponse(content=token_response.model_dump(exclude_none=True), headers=NO_STORE_HEADERS)

        except OAuthError:
            raise
        except Exception as e:
            logger.error(f"Token exchange error: {e}")
            raise HTTPException(status_code=500, detail="Token exchange failed")

    # Protected resource
    @app.get("/api/whoami", response_model=AccessTokenClaims, responses={401: {"model": ErrorResponse}})
    async def whoami(claims: AccessTokenClaims = Depends(require_bearer_token)):
        """Return the claims of the presented bearer token"""
        return claims

    return app


config = Config.from_env()
configure_logging(config)
app = create_app(config)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True,
    )
