"""
Unit tests for the proof backend factory.
"""

import pytest

from festfund_zk.privacy_protocol import factory, feature_flags
from festfund_zk.privacy_protocol.interfaces import ProofBackend
from festfund_zk.privacy_protocol.pedersen.backend import PedersenProofBackend
from festfund_zk.privacy_protocol.remote.backend import RemoteBackendConfig, RemoteProofBackend


@pytest.fixture(autouse=True)
def reset_feature_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    feature_flags.set_backend_type(None)
    monkeypatch.delenv("FESTFUND_PROOF_BACKEND", raising=False)
    yield
    feature_flags.set_backend_type(None)


def test_default_backend_is_local(tmp_path) -> None:
    backend = factory.get_proof_backend(circuit_dir=tmp_path)
    assert isinstance(backend, PedersenProofBackend)
    assert backend.kind == "local"


def test_prefer_remote_with_config() -> None:
    config = RemoteBackendConfig(port=9999)
    backend = factory.get_proof_backend(prefer="remote", config=config)
    assert isinstance(backend, RemoteProofBackend)
    assert backend.config is config


def test_env_var_selects_remote(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "remote")
    assert isinstance(factory.get_proof_backend(), RemoteProofBackend)


def test_each_call_returns_a_new_instance() -> None:
    first = factory.get_proof_backend(prefer="remote")
    second = factory.get_proof_backend(prefer="remote")
    assert first is not second


def test_invalid_backend_name() -> None:
    with pytest.raises(ValueError):
        factory.resolve_backend_name(prefer="snark")


def test_registry_classes_implement_interface() -> None:
    for name in factory.BACKEND_REGISTRY:
        assert issubclass(factory._load_backend_class(name), ProofBackend)


def test_bad_import_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(factory.BACKEND_REGISTRY, "local", "festfund_zk.missing_module.Backend")
    with pytest.raises(ImportError):
        factory.get_proof_backend(prefer="local")


def test_class_must_implement_proof_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(
        factory.BACKEND_REGISTRY, "local", "festfund_zk.privacy_protocol.types.ProofBundle"
    )
    with pytest.raises(TypeError):
        factory.get_proof_backend(prefer="local")
