"""
Authentication middleware for mTLS client certificate chains.
"""
import logging
import urllib.parse
from functools import wraps
from typing import List, Optional

from flask import request, g, jsonify

from .security_service import SecurityService

PEM_BEGIN = '-----BEGIN CERTIFICATE-----'
PEM_END = '-----END CERTIFICATE-----'

# mod_ssl exports intermediates as SSL_CLIENT_CERT_CHAIN_0, _1, ...
CHAIN_ENVIRON_PREFIX = 'SSL_CLIENT_CERT_CHAIN_'
MAX_CHAIN_ENTRIES = 16


class MTLSAuthMiddleware:
    """Middleware for mTLS client certificate chain authentication."""

    def __init__(self, app, security_service: SecurityService, config):
        """Initialize the authentication middleware."""
        self.app = app
        self.security_service = security_service
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Wrap the Flask app
        self.wsgi_app = app.wsgi_app
        app.wsgi_app = self

    def __call__(self, environ, start_response):
        """WSGI application call."""
        client_chain_pem = self._extract_client_chain(environ)

        environ['mtls.client_cert'] = client_chain_pem
        environ['mtls.authenticated'] = False
        environ['mtls.client_id'] = None
        environ['mtls.certificate'] = None
        environ['mtls.error'] = None

        if self.config.enable_mtls and client_chain_pem:
            auth_result = self.security_service.validate_client_chain(
                client_chain_pem, source=environ.get('REMOTE_ADDR')
            )

            environ['mtls.authenticated'] = auth_result.is_authenticated
            environ['mtls.client_id'] = auth_result.client_id
            environ['mtls.certificate'] = auth_result.certificate
            environ['mtls.error'] = auth_result.error_message

            if auth_result.is_authenticated:
                self.logger.info(f"Client authenticated: {auth_result.client_id}")
            else:
                self.logger.warning(f"Client authentication failed: {auth_result.error_message}")

        return self.wsgi_app(environ, start_response)

    def _extract_client_chain(self, environ) -> Optional[str]:
        """Extract the client certificate and any intermediates as one PEM bundle."""
        client_cert = self._extract_client_certificate(environ)
        if not client_cert:
            return None

        return "\n".join([client_cert] + self._extract_intermediates(environ))

    def _extract_client_certificate(self, environ) -> Optional[str]:
        """Extract the end-entity certificate from the WSGI environment."""
        # Standard SSL_CLIENT_CERT (Apache, nginx)
        client_cert = environ.get('SSL_CLIENT_CERT')
        if client_cert:
            return client_cert

        # Reverse proxies forwarding a url-encoded header
        client_cert = environ.get('HTTP_SSL_CLIENT_CERT')
        if client_cert:
            return urllib.parse.unquote(client_cert)

        # nginx $ssl_client_cert with proxy_set_header X-SSL-CERT
        client_cert = environ.get('HTTP_X_SSL_CERT')
        if client_cert:
            return self._restore_pem(client_cert)

        return None

    def _extract_intermediates(self, environ) -> List[str]:
        intermediates = []
        for i in range(MAX_CHAIN_ENTRIES):
            entry = environ.get(f'{CHAIN_ENVIRON_PREFIX}{i}')
            if not entry:
                break
            intermediates.append(entry)
        return intermediates

    def _restore_pem(self, value: str) -> str:
        cert_content = value.replace(' ', '\n')
        # The space replacement also splits the armour lines
        cert_content = cert_content.replace('-----BEGIN\nCERTIFICATE-----', PEM_BEGIN)
        cert_content = cert_content.replace('-----END\nCERTIFICATE-----', PEM_END)
        if not cert_content.startswith(PEM_BEGIN):
            cert_content = f"{PEM_BEGIN}\n{cert_content}\n{PEM_END}"
        return cert_content


def setup_mtls_authentication(app, security_service: SecurityService, config):
    """Set up mTLS authentication for Flask app."""

    MTLSAuthMiddleware(app, security_service, config)

    @app.before_request
    def authenticate_request():
        """Authenticate the request using the client certificate chain."""
        g.client_certificate = None

        if request.endpoint == 'health_check' or not config.enable_mtls:
            g.client_id = 'anonymous'
            g.authenticated = True
            return

        authenticated = request.environ.get('mtls.authenticated', False)
        client_id = request.environ.get('mtls.client_id')
        error_message = request.environ.get('mtls.error')

        if not authenticated:
            if not request.environ.get('mtls.client_cert'):
                if not config.client_cert_required:
                    g.client_id = 'anonymous'
                    g.authenticated = False
                    return
                return jsonify({
                    'error': 'Client certificate required',
                    'message': 'mTLS authentication requires a valid client certificate'
                }), 401
            return jsonify({
                'error': 'Authentication failed',
                'message': error_message or 'Invalid client certificate'
            }), 401

        # Downstream code sees exactly the leaf the validator selected
        g.client_id = client_id
        g.client_certificate = request.environ.get('mtls.certificate')
        g.authenticated = True

    return app


def require_authentication(f):
    """Decorator to require authentication for specific endpoints."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not getattr(g, 'authenticated', False):
            return jsonify({
                'error': 'Authentication required',
                'message': 'This endpoint requires client certificate authentication'
            }), 401
        return f(*args, **kwargs)
    return decorated_function
