"""Local Implementation

The session runs an agent process on the target platform and talks to it
over pipes. Replies and events are read on a background thread; requests
are matched to their futures by id.

"""
import itertools
import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..agent import protocol
from ..config_classes import AgentConfig
from ..exceptions import UnexpectedError, UserResolvableError
from ..platforms import TargetPlatform
from ..scheduler.future import Future
from . import interface
from .events import (
    CellId,
    EvaluationFinished,
    EvaluationStatus,
    SessionEvent,
    SessionEventKind,
    event_from_message,
)
from .workspace import CellBuffers, WorkspaceService

LOG = logging.getLogger(__name__)

# Directory holding the cellrepl package, so any interpreter can import the agent
PACKAGE_ROOT = Path(__file__).resolve().parents[2]


class AgentStartupError(UserResolvableError):
    """The agent didn't start"""


class AgentDisconnected(UnexpectedError):
    """The agent went away"""


class AgentRequestError(UnexpectedError):
    """The agent failed a request"""


@dataclass
class PendingRequest:
    future: Future
    cell_id: Optional[CellId] = None


def _now(fn, *args) -> Future:
    """Call FN synchronously, packaging the outcome as a Future"""
    try:
        return Future.resolved_with(fn(*args))
    except Exception as exc:
        return Future.failed_with(exc)


class LocalEvaluationService(interface.EvaluationService):
    def __init__(self, session: "LocalSession"):
        self.session = session
        self.buffers = session.buffers

    def insert_cell(self, initial_text: str = "", after: CellId = None) -> Future:
        return _now(self.buffers.insert, initial_text, after)

    def get_buffer(self, cell_id: CellId) -> Future:
        return _now(self.buffers.get, cell_id)

    def update_buffer(self, cell_id: CellId, text: str) -> Future:
        return _now(self.buffers.set, cell_id, text)

    def evaluate(self, cell_id: CellId) -> Future:
        try:
            code = self.buffers.get(cell_id)
        except Exception as exc:
            return Future.failed_with(exc)
        return self.session.request("evaluate", cell_id=cell_id, cell=cell_id, code=code)


class LocalPackageManager(interface.PackageManagerService):
    def __init__(self, session: "LocalSession"):
        self.session = session

    def restore(self, packages: Tuple[interface.PackageReference, ...]) -> Future:
        if not packages:
            return Future.resolved_with(interface.RestoreResult())
        wire = [dict(id=p.id, version=p.version) for p in packages]
        LOG.info("Restoring %d packages", len(wire))
        return self.session.request("restore", packages=wire).then(
            lambda value: interface.RestoreResult(**value)
        )


class LocalSession(interface.Session):
    def __init__(self, platform: TargetPlatform, agent_config: AgentConfig = None):
        self.platform = platform
        self.agent_config = agent_config or AgentConfig()
        self.description = None
        self.events = interface.EventStream()
        self.buffers = CellBuffers()
        self.evaluation_service = LocalEvaluationService(self)
        self.workspace_service = WorkspaceService(self.buffers)
        self.package_manager_service = LocalPackageManager(self)
        self.disconnected = False
        self._proc = None
        self._reader = None
        self._ready = Future()
        self._closing = False
        self._pending = {}
        self._request_ids = itertools.count(1)
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()

    def _emit(self, kind: SessionEventKind, data=None):
        self.events.emit(SessionEvent(kind, data))

    ## lifecycle

    def agent_command(self):
        cmd = [self.platform.executable, "-m", "cellrepl.agent"]
        if self.agent_config.install_packages:
            cmd.append("--install-packages")
        return cmd

    def _agent_env(self):
        env = dict(os.environ)
        paths = [str(PACKAGE_ROOT)]
        if env.get("PYTHONPATH"):
            paths.append(env["PYTHONPATH"])
        env["PYTHONPATH"] = os.pathsep.join(paths)
        return env

    def initialize(self, description: interface.SessionDescription) -> Future:
        self.description = description
        self._emit(SessionEventKind.CONNECTING_TO_AGENT)

        cmd = self.agent_command()
        LOG.info("Starting agent: %s", " ".join(cmd))
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                cwd=str(description.environment.working_directory),
                env=self._agent_env(),
                text=True,
                encoding="utf-8",
                bufsize=1,
                start_new_session=True,
            )
        except OSError as exc:
            self._settle_ready(
                exc=AgentStartupError(
                    f"Can't start {self.platform.executable}: {exc}",
                    f"Check the executable of platform `{self.platform.id}'.",
                )
            )
            return self._ready

        self._reader = threading.Thread(
            target=self._read_loop, name="cellrepl-agent-reader", daemon=True
        )
        self._reader.start()

        timer = threading.Timer(self.agent_config.startup_timeout, self._startup_timed_out)
        timer.daemon = True
        timer.start()
        self._ready.add_done_callback(lambda _: timer.cancel())
        return self._ready

    def _settle_ready(self, exc=None):
        with self._lock:
            if self._ready.resolved:
                return
            if exc is None:
                self._ready.set_result(None)
            else:
                self._ready.set_exception(exc)

    def _startup_timed_out(self):
        self._settle_ready(
            exc=AgentStartupError(
                f"Agent didn't start within {self.agent_config.startup_timeout}s",
                "Increase [agent] startup_timeout, or check the platform executable.",
            )
        )

    def close(self):
        """Stop the agent. The session can't be used afterwards"""
        if self._proc is None:
            return
        with self._lock:
            self._closing = True

        if self._proc.poll() is None:
            try:
                self._send(dict(id=None, op="shutdown", args={}))
                self._proc.stdin.close()
            except OSError as exc:
                LOG.debug("Agent pipe already closed: %s", exc)
            try:
                self._proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                LOG.warning("Agent didn't stop, killing it")
                self._proc.kill()
                self._proc.wait()

        if self._reader is not None:
            self._reader.join(timeout=5)
        self._emit(SessionEventKind.TERMINATED)

    ## agent I/O

    def _read_loop(self):
        for line in self._proc.stdout:
            try:
                message = protocol.decode(line)
            except ValueError:
                LOG.warning("Bad message from agent: %r", line)
                continue
            self._dispatch(message)
        self._on_disconnect()

    def _dispatch(self, message: dict):
        if "event" in message:
            if message["event"] == "ready":
                LOG.info(
                    "Agent ready: Python %s (pid %s)", message.get("python"), message.get("pid")
                )
                self._emit(SessionEventKind.INITIALIZING_WORKSPACE)
                self._emit(SessionEventKind.READY)
                self._settle_ready()
            else:
                self._emit(SessionEventKind.EVALUATION, event_from_message(message))
            return

        with self._lock:
            pending = self._pending.pop(message.get("id"), None)
        if pending is None:
            LOG.debug("Reply to nobody: %s", message)
            return
        if message.get("ok"):
            pending.future.set_result(message.get("value"))
        else:
            pending.future.set_exception(AgentRequestError(message.get("error", "")))

    def _on_disconnect(self):
        code = self._proc.wait()
        with self._lock:
            self.disconnected = True
            pending, self._pending = self._pending, {}
            closing = self._closing

        LOG.info("Agent exited with %s (closing? %s)", code, closing)
        if not closing:
            self._emit(SessionEventKind.AGENT_DISCONNECTED)

        self._settle_ready(
            exc=AgentStartupError(
                f"Agent exited during startup (code {code})",
                f"Can `{self.platform.executable}' run `python -m cellrepl.agent'?",
            )
        )
        for request in pending.values():
            self._abandon(request)

    def _abandon(self, request: PendingRequest):
        """Settle a request the agent will never answer"""
        if request.cell_id is not None:
            self._emit(
                SessionEventKind.EVALUATION,
                EvaluationFinished(request.cell_id, EvaluationStatus.DISCONNECTED),
            )
            request.future.set_result(EvaluationStatus.DISCONNECTED.value)
        else:
            request.future.set_exception(AgentDisconnected("Agent is not connected"))

    def _send(self, message: dict):
        with self._write_lock:
            self._proc.stdin.write(protocol.encode(message))
            self._proc.stdin.flush()

    def request(self, op: str, cell_id: CellId = None, **args) -> Future:
        """Send a request to the agent. CELL_ID marks an evaluation"""
        request = PendingRequest(Future(), cell_id)
        with self._lock:
            connected = self._proc is not None and not self.disconnected
            if connected:
                req_id = next(self._request_ids)
                self._pending[req_id] = request

        if not connected:
            self._abandon(request)
            return request.future

        try:
            self._send(dict(id=req_id, op=op, args=args))
        except OSError as exc:
            # The reader sees the agent go and settles the request
            LOG.warning("Couldn't send %s to agent: %s", op, exc)
        return request.future
