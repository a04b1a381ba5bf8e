"""
Python client for the Covenant Realty API.

`frontend_app.utils.api` talks to the backend over HTTP, `search_store` holds
the per-page search filter state and `storage` persists the session locally.
"""
