"""`axon`: command-line client for Axon backends.

Run from source with:
  `python -m apps.cli.main --help`
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Sequence

from apps.cli.commands import CommandError, health, infer, run, serve
from axon.engine.types import InferenceRequest, ModelConfig, SamplingParams
from axon.errors import AxonError
from axon.settings import SettingsError, load_settings


def _add_sampling_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--prompt", required=True, help="Prompt text")
    p.add_argument("--max-tokens", type=int, default=100, help="Max tokens to generate (default: 100)")
    p.add_argument("--temperature", type=float, default=1.0, help="Sampling temperature (default: 1.0)")
    p.add_argument("--top-p", type=float, default=None, help="Nucleus sampling threshold")
    p.add_argument("--top-k", type=int, default=None, help="Top-k sampling")
    p.add_argument("--presence-penalty", type=float, default=None)
    p.add_argument("--frequency-penalty", type=float, default=None)
    p.add_argument("--stop", action="append", default=[], help="Stop sequence (repeatable)")
    p.add_argument("--request-id", default=None, help="Opaque id echoed back in the response")
    p.add_argument("--json", action="store_true", help="Machine-readable JSON output")


def _add_model_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--model", required=True, help="Model path or HF repo id")
    p.add_argument("--host", default=None, help="Engine bind host (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=None, help="Engine bind port (default: 8000)")
    p.add_argument("--tensor-parallel-size", type=int, default=None)
    p.add_argument("--max-batch-size", type=int, default=None)
    p.add_argument("--max-model-len", dest="max_sequence_length", type=int, default=None)
    p.add_argument("--dtype", default=None, help="auto|half|bfloat16|float32 (default: engine default)")
    p.add_argument(
        "--engine-option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra engine flag, e.g. gpu_memory_utilization=0.9 (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()
    p = argparse.ArgumentParser(prog="axon", description="Axon CLI")
    p.add_argument(
        "--url",
        default=settings.url,
        help="Engine base URL for health/infer (default: %(default)s)",
    )
    p.add_argument(
        "--backend",
        default=settings.backend,
        help="Backend name (default: %(default)s)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="command")

    health_p = sub.add_parser("health", help="Probe a running engine")
    health_p.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    infer_p = sub.add_parser("infer", help="Run one completion against a running engine")
    infer_p.add_argument("--model", default=None, help="Model id to load/validate before inference")
    _add_sampling_args(infer_p)

    serve_p = sub.add_parser("serve", help="Spawn a managed engine and keep it running")
    _add_model_args(serve_p)

    run_p = sub.add_parser("run", help="Spawn an engine, run one completion, shut it down")
    _add_model_args(run_p)
    _add_sampling_args(run_p)
    return p


def _parse_engine_options(items: Sequence[str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not key:
            raise CommandError(f"Invalid --engine-option {item!r} (expected KEY=VALUE)")
        options[key] = value.strip() if sep else True
    return options


def _model_config(args: argparse.Namespace) -> ModelConfig:
    return ModelConfig(
        model_name=args.model,
        tensor_parallel_size=args.tensor_parallel_size,
        max_batch_size=args.max_batch_size,
        max_sequence_length=args.max_sequence_length,
        dtype=args.dtype,
        host=args.host,
        port=args.port,
        engine_options=_parse_engine_options(args.engine_option),
    )


def _inference_request(args: argparse.Namespace) -> InferenceRequest:
    return InferenceRequest(
        prompt=args.prompt,
        sampling=SamplingParams(
            max_tokens=args.max_tokens,
            temperature=args.temperature,
            top_p=args.top_p,
            top_k=args.top_k,
            presence_penalty=args.presence_penalty,
            frequency_penalty=args.frequency_penalty,
            stop_sequences=list(args.stop),
        ),
        request_id=args.request_id,
    )


def main(argv: Sequence[str] | None = None) -> int:
    try:
        parser = build_parser()
    except SettingsError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    command = args.command
    if command is None:
        parser.print_help()
        return 2

    try:
        if command == "health":
            return health(url=args.url, backend_name=args.backend, json_output=bool(args.json))
        if command == "infer":
            return infer(
                url=args.url,
                backend_name=args.backend,
                request=_inference_request(args),
                model=args.model,
                json_output=bool(args.json),
            )
        if command == "serve":
            return serve(backend_name=args.backend, config=_model_config(args))
        if command == "run":
            return run(
                backend_name=args.backend,
                config=_model_config(args),
                request=_inference_request(args),
                json_output=bool(args.json),
            )
    except (CommandError, AxonError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    parser.error(f"Unknown command: {command!r}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
