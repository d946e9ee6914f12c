# Engine-agnostic backend layer
#
# This package provides one contract for driving any model-serving engine.
#
# Key components:
#   - backends/           Engine-specific backends (vllm/)
#   - registry.py         Maps backend names to backend classes
#   - types.py            Request/response, health and metrics types
#   - polling.py          Fixed-interval polling with an attempt limit
#   - process_control.py  OS signal primitives (exists / graceful / force)
#   - metrics.py          Per-backend request counters
