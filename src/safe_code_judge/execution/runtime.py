from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import threading
import time
from concurrent.futures import Future
from typing import IO, Callable, Protocol, cast

logger = logging.getLogger(__name__)

NODE_PATH_ENV = "SAFE_CODE_JUDGE_NODE"

# Evaluates one program per input line in a fresh V8 context. The context has
# no require/process/fetch; console output is discarded so stdout stays a
# clean reply channel.
HOST_SCRIPT = r"""
const readline = require("readline");
const vm = require("vm");

const quiet = () => undefined;
const reply = (message) => process.stdout.write(JSON.stringify(message) + "\n");

const lines = readline.createInterface({ input: process.stdin, terminal: false });
lines.on("line", (line) => {
  let id = null;
  try {
    const request = JSON.parse(line);
    id = request.id;
    const context = vm.createContext({
      console: { log: quiet, info: quiet, warn: quiet, error: quiet, debug: quiet },
    });
    const options = { filename: "submission.js" };
    if (typeof request.timeout_ms === "number") {
      options.timeout = request.timeout_ms;
    }
    const value = vm.runInContext(String(request.source), context, options);
    reply({ id, ok: true, value: value === undefined ? "undefined" : String(value) });
  } catch (err) {
    const message = err && err.message ? err.message : String(err);
    reply({ id, ok: false, error: message });
  }
});
reply({ ready: true, version: process.version });
""".strip()


class RuntimeUnavailableError(RuntimeError):
    """The secondary runtime could not be provisioned."""


class RuntimeLoadTimeout(RuntimeUnavailableError):
    """Provisioning did not finish within the caller's budget."""


class RuntimeEvaluationError(RuntimeError):
    """A single evaluation inside a provisioned runtime failed."""


class ScriptEvaluationError(RuntimeEvaluationError):
    """The evaluated program threw or failed to parse."""


class RuntimeFault(RuntimeEvaluationError):
    """The runtime process itself stopped answering."""


class ScriptRuntime(Protocol):
    @property
    def alive(self) -> bool:
        """Return whether the runtime can still evaluate programs.

        Example:
            ```python
            runtime.alive
            ```
        """
        ...

    def evaluate(self, program: str, timeout_ms: int | None = None) -> str:
        """Evaluate a program and return its completion value as text.

        A program running longer than `timeout_ms` fails with
        `ScriptEvaluationError`.

        Example:
            ```python
            text = runtime.evaluate("1 + 1")  # "2"
            ```
        """
        ...


def resolve_node_executable() -> str | None:
    """Locate the Node.js executable from the environment or PATH.

    Example:
        ```python
        node = resolve_node_executable()
        ```
    """
    configured = os.environ.get(NODE_PATH_ENV, "").strip()
    if configured:
        return configured
    return shutil.which("node")


class NodeRuntime:
    """A long-lived Node.js host process evaluating one program at a time.

    Example:
        ```python
        runtime = NodeRuntime.start()
        runtime.evaluate("JSON.stringify([1, 2])")  # "[1,2]"
        ```
    """

    def __init__(self, process: subprocess.Popen[str], version: str) -> None:
        """Wrap an already started, handshaken host process.

        Example:
            ```python
            runtime = NodeRuntime(process, "v20.11.0")
            ```
        """
        self._process = process
        self._stdin = cast(IO[str], process.stdin)
        self._stdout = cast(IO[str], process.stdout)
        self._lock = threading.Lock()
        self._sequence = 0
        self.version = version

    @classmethod
    def start(cls, executable: str | None = None) -> "NodeRuntime":
        """Start the host process and wait for its ready banner.

        Example:
            ```python
            runtime = NodeRuntime.start("/usr/local/bin/node")
            ```
        """
        node = executable or resolve_node_executable()
        if node is None:
            raise RuntimeUnavailableError(
                "Node.js executable was not found. Install Node.js or set "
                f"{NODE_PATH_ENV}."
            )
        try:
            process = subprocess.Popen(
                [node, "-e", HOST_SCRIPT],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except OSError as exc:
            raise RuntimeUnavailableError(f"Failed to start Node.js: {exc}") from exc

        banner = cast(IO[str], process.stdout).readline()
        try:
            ready = json.loads(banner) if banner else {}
        except json.JSONDecodeError:
            ready = {}
        if not isinstance(ready, dict) or not ready.get("ready"):
            process.kill()
            process.wait()
            raise RuntimeUnavailableError("Node.js host did not report ready")
        return cls(process, str(ready.get("version", "")))

    @property
    def alive(self) -> bool:
        """Return whether the host process is still running.

        Example:
            ```python
            runtime.alive  # True
            ```
        """
        return self._process.poll() is None

    def evaluate(self, program: str, timeout_ms: int | None = None) -> str:
        """Evaluate `program` in a fresh context and return its completion value.

        `timeout_ms` is enforced inside the host by the `vm` module, so an
        endless loop releases the runtime once the budget is spent.

        Example:
            ```python
            runtime.evaluate("[1, 2].length", timeout_ms=1_000)  # "2"
            ```
        """
        with self._lock:
            if not self.alive:
                raise RuntimeFault(
                    f"JavaScript runtime exited with code {self._process.returncode}"
                )
            self._sequence += 1
            request_id = self._sequence
            try:
                message = {"id": request_id, "source": program, "timeout_ms": timeout_ms}
                self._stdin.write(json.dumps(message) + "\n")
                self._stdin.flush()
                line = self._stdout.readline()
            except OSError as exc:
                raise RuntimeFault(f"JavaScript runtime pipe closed: {exc}") from exc

        if not line:
            raise RuntimeFault("JavaScript runtime exited unexpectedly")
        try:
            reply = json.loads(line)
        except json.JSONDecodeError as exc:
            raise RuntimeFault("JavaScript runtime returned invalid JSON") from exc
        if reply.get("id") != request_id:
            raise RuntimeFault("JavaScript runtime reply out of sequence")
        if not reply.get("ok"):
            raise ScriptEvaluationError(str(reply.get("error") or "Unknown error"))
        return str(reply.get("value", ""))


class LazyRuntime:
    """Provision a runtime on first use and share it for the process lifetime.

    Concurrent first callers share one in-flight provisioning. A failed
    provisioning is forgotten so a later call can try again; a timed-out wait
    leaves the provisioning running for the next caller to join.

    Example:
        ```python
        cache = LazyRuntime(NodeRuntime.start)
        runtime = cache.acquire(timeout_ms=15_000)
        ```
    """

    def __init__(self, provision: Callable[[], ScriptRuntime], *, name: str = "JavaScript") -> None:
        """Initialize an empty cache around a provisioning hook.

        Example:
            ```python
            cache = LazyRuntime(lambda: FakeRuntime())
            ```
        """
        self._provision = provision
        self._name = name
        self._lock = threading.Lock()
        self._future: Future[ScriptRuntime] | None = None

    @property
    def cached(self) -> ScriptRuntime | None:
        """Return the provisioned runtime, or `None` if none is ready.

        Example:
            ```python
            cache.cached is None  # True before the first acquire
            ```
        """
        with self._lock:
            future = self._future
        if future is None or not future.done() or future.exception() is not None:
            return None
        return future.result()

    def acquire(self, timeout_ms: int) -> ScriptRuntime:
        """Return the shared runtime, provisioning it if needed.

        Example:
            ```python
            runtime = cache.acquire(timeout_ms=15_000)
            ```
        """
        with self._lock:
            future = self._future
            if future is not None and future.done() and not self._usable(future):
                logger.warning("%s runtime is no longer alive; provisioning again", self._name)
                future = None
            if future is None:
                future = Future()
                self._future = future
                threading.Thread(
                    target=self._provision_into,
                    args=(future,),
                    name=f"{self._name.lower()}-runtime-provision",
                    daemon=True,
                ).start()

        try:
            return future.result(timeout=timeout_ms / 1000)
        except TimeoutError:
            raise RuntimeLoadTimeout(
                f"{self._name} runtime load timeout after {timeout_ms} ms"
            ) from None
        except RuntimeUnavailableError:
            raise
        except Exception as exc:
            raise RuntimeUnavailableError(f"{self._name} runtime failed to load: {exc}") from exc

    def invalidate(self, runtime: ScriptRuntime) -> None:
        """Forget `runtime` if it is the cached one.

        Example:
            ```python
            cache.invalidate(runtime)
            ```
        """
        with self._lock:
            future = self._future
            if future is None or not future.done() or future.exception() is not None:
                return
            if future.result() is runtime:
                self._future = None

    def _usable(self, future: Future[ScriptRuntime]) -> bool:
        """Return whether a completed future holds a live runtime.

        Example:
            ```python
            cache._usable(future)
            ```
        """
        return future.exception() is None and future.result().alive

    def _provision_into(self, future: Future[ScriptRuntime]) -> None:
        """Run the provisioning hook and publish its outcome on `future`.

        Example:
            ```python
            cache._provision_into(Future())
            ```
        """
        started = time.perf_counter()
        try:
            runtime = self._provision()
        except BaseException as exc:
            with self._lock:
                if self._future is future:
                    self._future = None
            logger.warning("%s runtime provisioning failed: %s", self._name, exc)
            future.set_exception(exc)
            return
        logger.info(
            "%s runtime provisioned in %.0f ms",
            self._name,
            (time.perf_counter() - started) * 1000,
        )
        future.set_result(runtime)


DEFAULT_RUNTIME = LazyRuntime(NodeRuntime.start)
