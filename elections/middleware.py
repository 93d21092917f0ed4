"""
Custom middleware for VoteX
===========================

- ActorMiddleware: Attaches request.actor (identity + role) for the vote engine
- SecurityHeadersMiddleware: Adds security headers, and keeps API responses
  (results, receipts, has-voted answers) out of shared caches

OWASP recommendations implemented:
- X-Frame-Options: Prevent clickjacking
- X-Content-Type-Options: Prevent MIME type sniffing
- Referrer-Policy / Permissions-Policy
- Cache-Control: no-store on per-voter API data
"""

from django.utils.deprecation import MiddlewareMixin # pyright: ignore[reportMissingModuleSource]
import logging

from .actors import actor_for_user

logger = logging.getLogger(__name__)


class ActorMiddleware(MiddlewareMixin):
    """
    Resolve the current actor from the authenticated user.

    Must run after AuthenticationMiddleware. Anonymous requests get None.
    """

    def process_request(self, request):
        if not hasattr(request, 'user'):
            logger.error("ActorMiddleware requires AuthenticationMiddleware")
            request.actor = None
            return None

        request.actor = actor_for_user(request.user)
        return None


class SecurityHeadersMiddleware(MiddlewareMixin):
    """
    Add security headers to all HTTP responses.

    Headers added:
    - X-Frame-Options: DENY (prevent clickjacking)
    - X-Content-Type-Options: nosniff (prevent MIME sniffing)
    - Strict-Transport-Security: HTTPS enforcement
    - Cache-Control: no-store for /api/ responses
    """

    API_PREFIX = '/api/'

    def process_response(self, request, response):
        """Add security headers to response."""

        # Prevent clickjacking attacks
        response['X-Frame-Options'] = 'DENY'

        # Prevent MIME type sniffing
        response['X-Content-Type-Options'] = 'nosniff'

        if not response.has_header('Strict-Transport-Security'):
            response['Strict-Transport-Security'] = (
                'max-age=31536000; includeSubDomains; preload'
            )

        response['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        response['Permissions-Policy'] = (
            'geolocation=(), microphone=(), camera=()'
        )

        # Vote receipts and has-voted answers are per-voter; results go stale per ballot
        if request.path.startswith(self.API_PREFIX) and not response.has_header('Cache-Control'):
            response['Cache-Control'] = 'no-store'

        logger.debug("Security headers added to response")
        return response
