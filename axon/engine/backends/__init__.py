# Engine backends
#
# Each backend implements a common interface for:
#   - Loading a model (spawning the engine process if it owns one)
#   - Running inference over the engine's native protocol
#   - Reporting health and metrics
#   - Shutting the engine down
#
# Callers only ever see InferenceBackend.

from .base import InferenceBackend

__all__ = ["InferenceBackend"]
