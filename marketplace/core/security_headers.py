"""Security headers stamped on every non-asset response."""

from __future__ import annotations

from typing import MutableMapping

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "script-src 'self' 'unsafe-eval' 'unsafe-inline' https://cdn.jsdelivr.net https://js.stripe.com",
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
        "img-src 'self' data: https: blob:",
        "font-src 'self' https://fonts.gstatic.com",
        "connect-src 'self' https://*.cloudinary.com https://*.neon.tech "
        "https://*.stackauth.com https://*.stack-auth.com https://1.1.1.1",
        "frame-src 'self' https://js.stripe.com https://*.stackauth.com https://*.stack-auth.com",
    ]
)

SECURITY_HEADERS: dict[str, str] = {
    "X-DNS-Prefetch-Control": "on",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}


def apply_security_headers(headers: MutableMapping[str, str]) -> None:
    """Set every security header, overriding values set downstream."""
    for name, value in SECURITY_HEADERS.items():
        headers[name] = value
