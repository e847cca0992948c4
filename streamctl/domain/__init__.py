"""
Domain layer containing the control plane's business logic.

Submodules:
- control: Lifecycle orchestrator (endpoint power, transmissions, social lives, recordings).
- store: Session store interface and its in-memory / MongoDB implementations.
- utils: Domain-specific utilities (e.g., ID generation).
"""
