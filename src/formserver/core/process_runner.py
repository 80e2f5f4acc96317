"""
=============================================================================
PROCESS RUNNER: ONE FORKED CHILD PER CONNECTION
=============================================================================

The alternative isolation unit (isolation="process"). Each connection is
handled in its own OS process, so a crash, a hang or a memory blow-up in
one request is invisible to every other request.

    Parent (accept loop)                    Child
    ────────────────────                    ─────
    accept() ─► conn
    fork() ───────────────────────────────► close inherited listener
    release conn (no shutdown!)             handle conn (read → dispatch → write)
    back to accept()                        close conn
    ...                                     os._exit(0)
    reap() ◄── waitpid(pid, WNOHANG) ────── (zombie until reaped)

=============================================================================
REAPING WITHOUT BLOCKING
=============================================================================

A finished child stays a zombie until the parent collects its exit status.
The parent can't sit in waitpid(): that would stall accept(). Instead the
listener calls reap() on every loop tick (at least once a second), and
reap() asks about each known child with WNOHANG, which returns immediately
whether or not the child has exited.

=============================================================================
"""

import os
import time
import logging
from typing import Callable, Optional, Any


class ProcessRunner:
    """
    Runs each job in a forked child process.

    Same surface as ThreadPool (start, submit, shutdown) plus reap().

    Usage:
        runner = ProcessRunner(max_children=16, in_child=listener.close_listener)
        runner.start()
        runner.submit(handle, args=(conn,))   # in the parent: returns True
        runner.reap()                          # call regularly
    """

    def __init__(
        self,
        max_children: int = 16,
        in_child: Optional[Callable[[], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            max_children: Live children allowed at once; submit() returns
                          False beyond this.
            in_child: Runs in each child right after fork, before the job
                      (e.g. to close the inherited listening socket).
            logger: Where to log.
        """
        if not hasattr(os, "fork"):
            raise RuntimeError("ProcessRunner needs os.fork (POSIX only)")
        self.max_children = max_children
        self.in_child = in_child
        self.log = logger or logging.getLogger(__name__)
        self._children: set[int] = set()
        self._started = False
        self.children_failed = 0

    @property
    def active_children(self) -> int:
        return len(self._children)

    def start(self):
        self._started = True

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> bool:
        """
        Fork and run func(*args) in the child.

        Returns (in the parent only; the child never returns):
            True if a child was started, False if at max_children.

        Raises:
            RuntimeError: If the runner isn't started.
            OSError: If fork() itself fails.
        """
        if not self._started:
            raise RuntimeError("Process runner is not running")

        if len(self._children) >= self.max_children:
            self.reap()
            if len(self._children) >= self.max_children:
                return False

        pid = os.fork()
        if pid == 0:
            self._run_child(func, args)  # Never returns

        self._children.add(pid)
        self.log.debug(f"Forked child {pid} ({len(self._children)} active)")
        return True

    def _run_child(self, func: Callable[..., Any], args: tuple):
        # Stays 1 unless func returns, so KeyboardInterrupt or SystemExit
        # in the child still reaps as a failure
        exit_code = 1
        try:
            if self.in_child is not None:
                self.in_child()
            func(*args)
            exit_code = 0
        except Exception as e:
            self.log.exception(f"Child {os.getpid()} failed: {e}")
        finally:
            # os._exit skips atexit handlers and buffered-IO flushing that
            # belong to the parent; flush logging ourselves first.
            for handler in logging.getLogger().handlers:
                try:
                    handler.flush()
                except (OSError, ValueError):
                    pass  # Stream already closed
            os._exit(exit_code)

    def reap(self) -> int:
        """
        Collect exit statuses of finished children without blocking.

        Returns:
            Number of children reaped.
        """
        reaped = 0
        for pid in list(self._children):
            try:
                done_pid, status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                # Already collected elsewhere (e.g. SIGCHLD set to SIG_IGN)
                self._children.discard(pid)
                reaped += 1
                continue
            if done_pid == 0:
                continue  # Still running

            self._children.discard(pid)
            reaped += 1
            code = os.waitstatus_to_exitcode(status)
            if code != 0:
                self.children_failed += 1
                self.log.warning(f"Child {pid} exited with status {code}")
        return reaped

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting jobs and, if wait, give live children time to finish.
        """
        self._started = False
        if not wait:
            self.reap()
            return

        deadline = time.time() + timeout if timeout else None
        while self._children:
            self.reap()
            if not self._children:
                break
            if deadline and time.time() > deadline:
                self.log.warning(f"{len(self._children)} child process(es) still running at shutdown")
                break
            time.sleep(0.05)
