"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

from arq import run_worker

from app.worker.tasks import get_redis_settings, send_transaction_notification, shutdown, startup


class WorkerSettings:
    functions = [send_transaction_notification]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    max_tries = 3


def main() -> None:
    run_worker(WorkerSettings, worker_name="propertyai_worker")  # type: ignore[arg-type]


if __name__ == "__main__":
    main()
