"""Encrypted health telemetry ingestion.

Layout:
- crypto/      → AES payload codec
- mqtt/        → Bus client, payload validation, alert publishing
- ledger/      → Ledger gateway, contracts, identity wallet
- pipeline/    → Intake state machine, per-device dispatch, thresholds
- resilience/  → Retry with backoff, dead-letter queue
- auth/        → Broker authentication gate
- endpoints/   → HTTP routes (health, auth, ledger query)
"""
