"""
=========================================================
Spotify Auth Gateway Cluster
=========================================================

Purpose:
- Use every CPU core: fork one worker per core
- All workers accept on ONE shared listening socket
- Log worker exits (pid, exit code, signal)

Note:
- Dead workers are NOT respawned. Workers hold no state,
  so a lost worker only costs capacity. Restart policy
  belongs to the operator / process manager.
=========================================================
"""

# =========================================================
# IMPORTS
# =========================================================
import logging
import os
import signal
import socket

from werkzeug.serving import make_server

from app import create_app
from spotify_config import load_config

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 128
STOP_SIGNALS = {signal.SIGINT, signal.SIGTERM}


def resolve_workers(config):
    """Worker count: WEB_CONCURRENCY if set, else logical CPU count."""
    if config.workers:
        return max(1, config.workers)
    return os.cpu_count() or 1


def bind_socket(host, port):
    """Open the listening socket every worker will inherit."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, port))
    sock.listen(LISTEN_BACKLOG)
    sock.set_inheritable(True)
    return sock


def describe_exit(status):
    """Split a wait() status into (exit_code, signal); one of them is None."""
    if os.WIFSIGNALED(status):
        return None, os.WTERMSIG(status)
    return os.waitstatus_to_exitcode(status), None


def serve_worker(sock, config):
    """Run one HTTP listener on the inherited socket until killed."""
    # Let the master decide what Ctrl+C means; workers die on SIGTERM
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGTERM, signal.SIG_DFL)
    signal.pthread_sigmask(signal.SIG_UNBLOCK, STOP_SIGNALS)

    server = make_server(
        config.host,
        config.port,
        create_app(config),
        threaded=True,
        fd=sock.fileno(),
    )
    logger.info("Worker %s: listening on port %s", os.getpid(), config.port)
    server.serve_forever()


def spawn_worker(sock, config):
    """Fork a worker process; returns the child pid in the master."""
    pid = os.fork()
    if pid == 0:
        code = 0
        try:
            serve_worker(sock, config)
        except Exception:
            logger.exception("Worker %s crashed", os.getpid())
            code = 1
        finally:
            os._exit(code)
    return pid


def _terminate(pids):
    for pid in list(pids):
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass


def run(config):
    """
    Master loop: fork the workers, then reap them.

    SIGINT/SIGTERM in the master forward SIGTERM to every
    worker; the master keeps reaping and returns once every
    worker has exited.
    """
    count = resolve_workers(config)
    sock = bind_socket(config.host, config.port)
    logger.info("Cluster master %s is running (%s workers)", os.getpid(), count)

    workers = set()
    stopping = False

    def _on_stop(signum, frame):
        nonlocal stopping
        if stopping:
            return
        stopping = True
        logger.info("Shutting down %s workers", len(workers))
        _terminate(workers)

    for signum in STOP_SIGNALS:
        signal.signal(signum, _on_stop)

    for _ in range(count):
        if stopping:
            break
        # A stop signal must not land between fork() and add()
        signal.pthread_sigmask(signal.SIG_BLOCK, STOP_SIGNALS)
        try:
            workers.add(spawn_worker(sock, config))
        finally:
            signal.pthread_sigmask(signal.SIG_UNBLOCK, STOP_SIGNALS)

    # Workers own the socket from here on
    sock.close()

    while workers:
        try:
            pid, status = os.wait()
        except ChildProcessError:
            break

        workers.discard(pid)
        code, sig = describe_exit(status)
        logger.error("Worker %s exited: code %s, signal %s", pid, code, sig)


# =========================================================
# MAIN ENTRY POINT
# =========================================================
def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(process)d %(name)s %(levelname)s %(message)s",
    )
    run(load_config())


if __name__ == "__main__":
    main()
