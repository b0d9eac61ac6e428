"""
auth_service tests

Covers the authentication service:

- Password hashing (`auth.py`)
- User store with per-operation deadlines (`store.py`)
- Credential workflow (`service.py`)
- Activity notifier for the logger service (`utils/activity_notifier.py`)
- FastAPI application and health routes (`main.py`, `routes/health.py`)
"""
