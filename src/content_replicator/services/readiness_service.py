"""
Runtime readiness checks for production rollout.
"""

from __future__ import annotations

from dataclasses import dataclass

from content_replicator.common.config import get_settings
from content_replicator.common.logging import get_project_logger

log = get_project_logger()


@dataclass
class ReadinessIssue:
    severity: str  # error|warning
    code: str
    message: str


@dataclass
class ReadinessState:
    ready: bool
    issues: list[ReadinessIssue]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def evaluate_readiness() -> ReadinessState:
    s = get_settings()
    issues: list[ReadinessIssue] = []
    is_prod = _is_prod_env(s.app_env)
    role = (s.sync_role or "").strip().lower()
    target_url = (s.sync_target_base_url or "").strip().lower()
    secret = (s.sync_shared_secret or "").strip()

    if role not in {"source", "target"}:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="sync_role_invalid",
                message="SYNC_ROLE должен быть source или target",
            )
        )

    if (s.auth_mode or "").strip().lower() == "api_key" and not (s.api_keys or "").strip():
        issues.append(
            ReadinessIssue(
                severity="error",
                code="auth_api_keys_empty",
                message="AUTH_MODE=api_key требует непустой API_KEYS",
            )
        )

    if role == "source":
        if not target_url:
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="sync_target_url_empty",
                    message="SYNC_ROLE=source требует SYNC_TARGET_BASE_URL",
                )
            )
        if not secret:
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="sync_shared_secret_empty",
                    message="SYNC_ROLE=source требует SYNC_SHARED_SECRET",
                )
            )
    if role == "target" and not secret:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="sync_shared_secret_empty",
                message="SYNC_ROLE=target без SYNC_SHARED_SECRET отклоняет все реплики",
            )
        )

    if is_prod:
        if (s.auth_mode or "").strip().lower() == "none":
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="auth_none_in_prod",
                    message="AUTH_MODE=none запрещен в prod",
                )
            )
        if role == "source" and target_url.startswith("http://"):
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="sync_target_not_https",
                    message="В prod SYNC_TARGET_BASE_URL должен использовать https://",
                )
            )
        if not bool(s.sync_verify_tls):
            issues.append(
                ReadinessIssue(
                    severity="warning",
                    code="sync_tls_verify_disabled",
                    message="SYNC_VERIFY_TLS=false в prod",
                )
            )
        if role == "source" and (s.sync_lock_mode or "").strip().lower() != "redis":
            issues.append(
                ReadinessIssue(
                    severity="warning",
                    code="sync_lock_local_in_prod",
                    message="SYNC_LOCK_MODE=local защищает цикл только внутри одного процесса",
                )
            )

    ready = all(i.severity != "error" for i in issues)
    return ReadinessState(ready=ready, issues=issues)


def enforce_startup_readiness(*, service_name: str) -> ReadinessState:
    s = get_settings()
    state = evaluate_readiness()
    errors = [i for i in state.issues if i.severity == "error"]

    if errors:
        log.error(
            "startup_readiness_failed",
            extra={
                "payload": {
                    "service": service_name,
                    "app_env": s.app_env,
                    "error_codes": [e.code for e in errors],
                }
            },
        )
    else:
        log.info(
            "startup_readiness_ok",
            extra={"payload": {"service": service_name, "app_env": s.app_env}},
        )

    should_fail_fast = _is_prod_env(s.app_env) and bool(
        getattr(s, "readiness_fail_fast_in_prod", True)
    )
    if should_fail_fast and errors:
        msg = ", ".join(e.code for e in errors)
        raise RuntimeError(f"startup readiness failed for {service_name}: {msg}")
    return state
