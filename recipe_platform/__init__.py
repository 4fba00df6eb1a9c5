"""Recipe sharing platform - Backend.

This repository is intentionally backend-only:
- JSON API for auth (register/login/refresh/logout) and recipes.
- Recipes are public to any signed-in user; only the owner may change them.

Core concepts:
- A *session* is an access token (short-lived, stateless) plus a refresh
  token (long-lived, stored on the user document; one per user).
- Favorites are weak references: a deleted recipe just disappears from lists.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
