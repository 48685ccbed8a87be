"""
Pytest test suite for the restaurant order service backend.

Test categories:
- Unit tests: phone rules, message texts, settings
- Service tests: repository, WhatsApp client, dispatcher and submission
  workflow against in-memory SQLite and a fake Twilio endpoint
- API tests: full FastAPI app with every collaborator overridden
"""
