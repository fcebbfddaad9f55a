"""caregiver_server: FastAPI surface over the questionnaire SDK.

Run with ``caregiver-server`` or ``uvicorn caregiver_server.app:app``.
"""
