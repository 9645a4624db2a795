"""
Worker Sync.

Назначение:
- периодически запускать цикл синхронизации (аналог cron-тика)
- уважать задержку SYNC_DELAY_MINUTES и лимит попыток
"""

from __future__ import annotations

import time

from content_replicator.common.config import get_settings
from content_replicator.common.errors import CycleInProgressError
from content_replicator.common.logging import get_project_logger, setup_logging
from content_replicator.jobs.sync_job import run as run_sync
from content_replicator.services.readiness_service import enforce_startup_readiness

log = get_project_logger()


def main() -> None:
    setup_logging()
    enforce_startup_readiness(service_name="worker-sync")
    settings = get_settings()
    interval_sec = max(5, int(settings.sync_interval_sec))

    log.info(
        "worker_sync_started",
        extra={
            "payload": {
                "role": settings.sync_role,
                "interval_sec": interval_sec,
                "batch_size": int(settings.sync_batch_size),
                "delay_minutes": int(settings.sync_delay_minutes),
            }
        },
    )

    while True:
        try:
            run_sync(ignore_delay=False)
        except CycleInProgressError:
            # Цикл уже идёт (ручной запуск): ждём следующий тик
            pass
        except Exception as e:
            log.error(
                "worker_sync_error",
                extra={"payload": {"err": str(e)[:300]}},
            )
        time.sleep(interval_sec)


if __name__ == "__main__":
    main()
