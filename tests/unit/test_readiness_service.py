from __future__ import annotations

import pytest

from content_replicator.services.readiness_service import (
    enforce_startup_readiness,
    evaluate_readiness,
)


def test_readiness_source_requires_target_and_secret(sync_settings) -> None:
    sync_settings.app_env = "dev"
    sync_settings.sync_role = "source"
    sync_settings.sync_target_base_url = ""
    sync_settings.sync_shared_secret = ""

    state = evaluate_readiness()
    codes = {i.code for i in state.issues}
    assert state.ready is False
    assert {"sync_target_url_empty", "sync_shared_secret_empty"} <= codes


def test_readiness_target_needs_only_secret(sync_settings) -> None:
    sync_settings.app_env = "dev"
    sync_settings.sync_role = "target"
    sync_settings.sync_target_base_url = ""
    sync_settings.sync_shared_secret = "s3cret"
    sync_settings.auth_mode = "api_key"
    sync_settings.api_keys = "k1"

    assert evaluate_readiness().ready is True


def test_readiness_prod_rules(sync_settings) -> None:
    sync_settings.app_env = "prod"
    sync_settings.sync_role = "source"
    sync_settings.auth_mode = "none"
    sync_settings.sync_target_base_url = "http://target.example"
    sync_settings.sync_shared_secret = "s3cret"
    sync_settings.sync_lock_mode = "local"

    state = evaluate_readiness()
    by_code = {i.code: i.severity for i in state.issues}
    assert state.ready is False
    assert by_code["auth_none_in_prod"] == "error"
    assert by_code["sync_target_not_https"] == "error"
    assert by_code["sync_lock_local_in_prod"] == "warning"


def test_enforce_startup_readiness_fails_fast_in_prod(sync_settings) -> None:
    sync_settings.app_env = "prod"
    sync_settings.readiness_fail_fast_in_prod = True
    sync_settings.sync_role = "source"
    sync_settings.sync_target_base_url = ""

    with pytest.raises(RuntimeError, match="sync_target_url_empty"):
        enforce_startup_readiness(service_name="worker-sync")


def test_enforce_startup_readiness_only_logs_in_dev(sync_settings) -> None:
    sync_settings.app_env = "dev"
    sync_settings.sync_role = "source"
    sync_settings.sync_target_base_url = ""

    state = enforce_startup_readiness(service_name="worker-sync")
    assert state.ready is False
