import pytest

from axon.engine.backends.base import InferenceBackend
from axon.engine.backends.vllm import VllmBackend
from axon.engine.registry import create_backend, list_backends, register_backend
from axon.errors import InvalidConfig


def test_vllm_is_registered():
    assert "vllm" in list_backends()


def test_create_backend_passes_kwargs():
    backend = create_backend(" VLLM ", base_url="http://127.0.0.1:8000")
    assert isinstance(backend, VllmBackend)
    assert backend.owns_process is False
    assert backend.endpoint == "http://127.0.0.1:8000"


def test_unknown_backend_lists_available():
    with pytest.raises(InvalidConfig, match="Available: .*vllm"):
        create_backend("tensorrt")


def test_register_backend_rejects_non_backend():
    with pytest.raises(TypeError):
        register_backend("bogus", dict)  # type: ignore[arg-type]


def test_register_custom_backend(monkeypatch):
    import axon.engine.registry as registry

    monkeypatch.setattr(registry, "_BACKEND_REGISTRY", dict(registry._BACKEND_REGISTRY))

    class EchoBackend(InferenceBackend):
        async def load_model(self, config):
            pass

        async def infer(self, request):
            raise NotImplementedError

        async def health_check(self):
            raise NotImplementedError

        async def shutdown(self):
            pass

        def metrics(self):
            raise NotImplementedError

        @property
        def state(self):
            raise NotImplementedError

        @property
        def current_model(self):
            return None

    register_backend("Echo", EchoBackend)
    assert "echo" in list_backends()
    assert isinstance(create_backend("echo"), EchoBackend)
