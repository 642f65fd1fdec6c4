"""HTTP dispatch for classification requests.

    router.py     — /bleed/{host} and /bleed/query
    middleware.py — RequestIdMiddleware (ULID request correlation)
"""
