"""SessionGuard - bearer-token session revocation for FastAPI services."""
