"""
mkcert-web: a local web console for mkcert and openssl.
"""

__version__ = "1.0.0"
