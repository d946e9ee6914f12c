"""Mock engine entrypoint (FastAPI + OpenAI-style completions).

Accepts the same launch flags Axon passes to vLLM, so it can stand in for
the real engine binary:
    AXON_VLLM_COMMAND="python -m apps.mock_engine.main" axon serve --model m

Example:
    python -m apps.mock_engine.main --model mock-model --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import argparse

from apps.mock_engine.app import create_app


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Axon mock completions engine")
    p.add_argument("--model", required=True, help="Model id to report and accept")
    p.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    p.add_argument("--latency", type=float, default=0.0, help="Artificial per-request latency in seconds")

    # vLLM flags: accepted for command-line compatibility, otherwise ignored.
    p.add_argument("--tensor-parallel-size", type=int, default=None)
    p.add_argument("--max-model-len", type=int, default=None)
    p.add_argument("--max-num-seqs", type=int, default=None)
    p.add_argument("--dtype", default=None)
    args, unknown = p.parse_known_args(argv)
    if unknown:
        print(f"[mock-engine] ignoring unsupported flags: {' '.join(unknown)}", flush=True)
    return args


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    app = create_app(model_id=args.model, latency_s=args.latency)

    try:
        import uvicorn
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("uvicorn is required to run the mock engine.") from exc

    print(f"[mock-engine] serving model={args.model!r} on {args.host}:{args.port}", flush=True)
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")


if __name__ == "__main__":
    main()
