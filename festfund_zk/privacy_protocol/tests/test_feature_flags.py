"""
Unit tests for feature flag backend selection.
"""

import pytest

from festfund_zk.privacy_protocol import feature_flags


@pytest.fixture(autouse=True)
def reset_feature_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    feature_flags.set_backend_type(None)
    monkeypatch.delenv("FESTFUND_PROOF_BACKEND", raising=False)
    yield
    feature_flags.set_backend_type(None)
    monkeypatch.delenv("FESTFUND_PROOF_BACKEND", raising=False)


def test_default_backend_is_local() -> None:
    assert feature_flags.get_backend_type() == "local"


def test_env_var_controls_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "remote")
    assert feature_flags.get_backend_type() == "remote"


def test_env_var_is_case_insensitive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", " Remote ")
    assert feature_flags.get_backend_type() == "remote"


def test_prefer_overrides_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "remote")
    assert feature_flags.get_backend_type(prefer="local") == "local"


def test_set_backend_type_overrides_and_clears(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "local")
    feature_flags.set_backend_type("remote")
    assert feature_flags.get_backend_type() == "remote"
    feature_flags.set_backend_type(None)
    assert feature_flags.get_backend_type() == "local"


def test_set_backend_type_empty_string_clears(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "remote")
    feature_flags.set_backend_type("local")
    feature_flags.set_backend_type("")
    assert feature_flags.get_backend_type() == "remote"


def test_invalid_prefer_raises_value_error() -> None:
    with pytest.raises(ValueError, match="Invalid backend type"):
        feature_flags.get_backend_type(prefer="invalid")


def test_invalid_env_raises_value_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FESTFUND_PROOF_BACKEND", "invalid")
    with pytest.raises(ValueError, match="Invalid backend type"):
        feature_flags.get_backend_type()


def test_invalid_override_raises_value_error() -> None:
    with pytest.raises(ValueError, match="Invalid backend type"):
        feature_flags.set_backend_type("mock")


def test_backend_override_restores_previous(monkeypatch: pytest.MonkeyPatch) -> None:
    feature_flags.set_backend_type("local")
    with feature_flags.backend_override("remote"):
        assert feature_flags.get_backend_type() == "remote"
    assert feature_flags.get_backend_type() == "local"


def test_backend_kind_parse() -> None:
    assert feature_flags.BackendKind.parse(" LOCAL ") is feature_flags.BackendKind.LOCAL
    assert feature_flags.BackendKind.parse("") is None
    assert feature_flags.BackendKind.options() == "local, remote"
    with pytest.raises(ValueError):
        feature_flags.BackendKind.parse(42)
