"""
Caching utilities for the POS application
Uses Flask-Caching for short-lived values such as the connectivity flag
"""

from flask_caching import Cache

cache = Cache()

CONNECTIVITY_KEY = 'connectivity:online'


def init_cache(app):
    """Initialize the cache with the Flask app"""
    cache.init_app(app)
    app.logger.info(f"Cache initialized with type: {app.config.get('CACHE_TYPE', 'SimpleCache')}")
    return cache


def remember_connectivity(app, online, timeout):
    """Cache a connectivity check result; a timeout of 0 disables caching"""
    with app.app_context():
        if timeout <= 0:
            cache.delete(CONNECTIVITY_KEY)
        else:
            cache.set(CONNECTIVITY_KEY, online, timeout=timeout)


def cached_connectivity(app):
    """The cached check result, or None once it has expired"""
    with app.app_context():
        return cache.get(CONNECTIVITY_KEY)
