"""
Startup script for the Celery worker and Celery beat
Manages both processes with proper logging and error handling
"""

import multiprocessing
import subprocess
import sys
import time
import signal
from pathlib import Path

# Add the parent directory to Python path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.logging import get_logger

logger = get_logger()

PROJECT_ROOT = str(Path(__file__).parent.parent)


def setup_signal_handlers():
    """Setup signal handlers for graceful shutdown"""

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def _run_celery(name: str, args: list):
    try:
        logger.info(f"Starting Celery {name} process")
        subprocess.run(
            [sys.executable, "-m", "celery", "-A", "app.celery", *args],
            check=True,
            cwd=PROJECT_ROOT,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Celery {name} failed with return code {e.returncode}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info(f"Celery {name} interrupted by user")
    except Exception as e:
        logger.error(f"Unexpected error in Celery {name} process: {e}")
        sys.exit(1)


def run_celery_worker():
    """Run Celery worker; receipt checks wait on countdowns so a pool is used"""
    _run_celery("worker", ["worker", "--loglevel=info", "--concurrency=2"])


def run_celery_beat():
    """Run Celery beat, which triggers the hourly birthday notifier"""
    Path(PROJECT_ROOT, "tmp").mkdir(exist_ok=True)
    _run_celery("beat", ["beat", "--loglevel=info"])


def check_redis_connection():
    """Check if Redis server is accessible"""
    try:
        import redis
        from app.config.settings import settings

        r = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD or None,
            socket_connect_timeout=5,
        )
        r.ping()
        logger.info("Redis connection successful")
        return True
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        logger.error("Please ensure Redis server is running")
        return False


def monitor_processes(processes):
    """Monitor running processes and handle failures"""
    logger.info("Starting process monitoring")

    while True:
        for process in processes:
            if not process.is_alive():
                logger.error(
                    f"{process.name} process died unexpectedly with exit code: {process.exitcode}"
                )

                # Terminate remaining processes
                terminate_processes(processes)
                sys.exit(1)

        time.sleep(1)


def terminate_processes(processes):
    """Gracefully terminate all processes"""
    logger.info("Initiating graceful shutdown of all services")

    for process in processes:
        if process.is_alive():
            logger.info(f"Terminating {process.name} process")
            process.terminate()

    for process in processes:
        try:
            process.join(timeout=10)
            if process.is_alive():
                logger.warning(
                    f"{process.name} did not terminate gracefully, force killing"
                )
                process.kill()
                process.join()
            else:
                logger.info(f"{process.name} terminated successfully")
        except Exception as e:
            logger.error(f"Error terminating {process.name}: {e}")


def main():
    """Start and manage the Celery worker and beat processes"""
    multiprocessing.freeze_support()

    setup_signal_handlers()

    logger.info("=" * 60)
    logger.info("Starting Birthday Reminder Worker (Celery worker + beat)")
    logger.info("=" * 60)
    logger.info("Press Ctrl+C to stop all services")

    # Broker, result backend and ticket store all live in Redis
    if not check_redis_connection():
        logger.error("Cannot start services without Redis connection")
        sys.exit(1)

    processes = []

    try:
        worker_process = multiprocessing.Process(
            target=run_celery_worker, name="CeleryWorker", daemon=False
        )
        worker_process.start()
        processes.append(worker_process)

        beat_process = multiprocessing.Process(
            target=run_celery_beat, name="CeleryBeat", daemon=False
        )
        beat_process.start()
        processes.append(beat_process)

        logger.info("Worker and beat started successfully")
        logger.info("-" * 60)

        monitor_processes(processes)

    except KeyboardInterrupt:
        logger.info("Shutdown signal received")
    except Exception as e:
        logger.error(f"Unexpected error in main process: {e}")
    finally:
        terminate_processes(processes)
        logger.info("All services stopped successfully")


if __name__ == "__main__":
    main()
