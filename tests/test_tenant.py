import threading

import pytest

from haemil.store.tenant import (
    MissingTenantError,
    must_tenant_id_from_context,
    tenant_id_from_context,
    with_tenant_id,
)


def test_tenant_id_missing():
    with pytest.raises(MissingTenantError):
        tenant_id_from_context()


def test_tenant_id_empty_rejected():
    with with_tenant_id(""):
        with pytest.raises(MissingTenantError):
            tenant_id_from_context()


def test_with_tenant_id_roundtrip():
    with with_tenant_id("acme") as tid:
        assert tid == "acme"
        assert tenant_id_from_context() == "acme"


def test_tenant_id_override_and_restore():
    with with_tenant_id("outer"):
        with with_tenant_id("inner"):
            assert tenant_id_from_context() == "inner"
        assert tenant_id_from_context() == "outer"
    with pytest.raises(MissingTenantError):
        tenant_id_from_context()


def test_must_tenant_id_raises_runtime_error():
    with pytest.raises(RuntimeError) as info:
        must_tenant_id_from_context()
    assert isinstance(info.value.__cause__, MissingTenantError)


def test_must_tenant_id_returns():
    with with_tenant_id("ok"):
        assert must_tenant_id_from_context() == "ok"


def test_missing_tenant_message():
    with pytest.raises(MissingTenantError, match="tenant id missing from context"):
        tenant_id_from_context()


def test_tenant_is_per_thread_context():
    seen = {}

    def worker():
        try:
            seen["value"] = tenant_id_from_context()
        except MissingTenantError:
            seen["value"] = None

    with with_tenant_id("main-only"):
        t = threading.Thread(target=worker)
        t.start()
        t.join()
        assert tenant_id_from_context() == "main-only"
    assert seen["value"] is None