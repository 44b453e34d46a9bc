"""Evaluate cells and restore packages inside the agent process"""

import ast
import builtins
import contextlib
import importlib
import importlib.metadata
import io
import linecache
import logging
import os
import platform
import subprocess
import sys
import traceback
import warnings
from dataclasses import dataclass, field
from typing import List, Optional

from .protocol import MessageWriter, Serialisable, decode, now_str

LOG = logging.getLogger(__name__)

SUCCESS = "Success"
INTERRUPTED = "Interrupted"
ERROR_DIAGNOSTIC = "ErrorDiagnostic"
EVALUATION_EXCEPTION = "EvaluationException"


@dataclass
class WireDiagnostic(Serialisable):
    id: str
    severity: str
    message: str
    span: List[int] = field(default_factory=lambda: [0, 0])


class OutputCapture(io.TextIOBase):
    """A text stream that forwards every write as an output event"""

    def __init__(self, agent: "Agent", cell_id: str, fd: int):
        self.agent = agent
        self.cell_id = cell_id
        self.fd = fd

    def writable(self):
        return True

    def write(self, text):
        if text:
            self.agent.send_event("output", self.cell_id, fd=self.fd, text=text)
        return len(text)


@dataclass
class CompiledCell:
    body: Optional[object] = None
    trailing_expr: Optional[object] = None
    diagnostics: List[WireDiagnostic] = field(default_factory=list)

    @property
    def failed(self):
        return any(d.severity == "error" for d in self.diagnostics)


class Agent:
    """Evaluates cells in one shared namespace"""

    def __init__(self, writer: MessageWriter, install_packages=False):
        self.writer = writer
        self.install_packages = install_packages
        self.namespace = {"__name__": "__main__", "__builtins__": builtins}
        self._cell_count = 0
        self.running = True

    def send_event(self, event: str, cell_id: str, **data):
        self.writer.send(dict(event=event, cell=cell_id, **data))

    ## compile

    def compile_cell(self, source: str, filename: str) -> CompiledCell:
        result = CompiledCell()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                tree = ast.parse(source, filename, "exec")
                last = None
                if tree.body and isinstance(tree.body[-1], ast.Expr):
                    last = tree.body.pop()
                result.body = compile(tree, filename, "exec")
                if last is not None:
                    result.trailing_expr = compile(
                        ast.Expression(body=last.value), filename, "eval"
                    )
            except SyntaxError as exc:
                result.diagnostics.append(
                    WireDiagnostic(
                        id=type(exc).__name__,
                        severity="error",
                        message=exc.msg,
                        span=[exc.lineno or 0, exc.offset or 0],
                    )
                )

        for item in caught:
            result.diagnostics.append(
                WireDiagnostic(
                    id=item.category.__name__,
                    severity="warning",
                    message=str(item.message),
                    span=[item.lineno or 0, 0],
                )
            )
        return result

    ## evaluate

    def _register_source(self, source: str) -> str:
        """Make the cell source visible to tracebacks"""
        self._cell_count += 1
        filename = f"<cell {self._cell_count}>"
        linecache.cache[filename] = (
            len(source),
            None,
            source.splitlines(True),
            filename,
        )
        return filename

    def evaluate(self, cell: str, code: str) -> str:
        """Evaluate CODE, emitting events for CELL. Return the final status"""
        self.send_event("started", cell)
        filename = self._register_source(code)
        compiled = self.compile_cell(code, filename)

        if compiled.failed:
            status = ERROR_DIAGNOSTIC
        else:
            status = self._execute(cell, compiled)

        self.send_event(
            "finished",
            cell,
            status=status,
            diagnostics=[d.serialise() for d in compiled.diagnostics],
        )
        return status

    def _execute(self, cell: str, compiled: CompiledCell) -> str:
        stdout = OutputCapture(self, cell, 1)
        stderr = OutputCapture(self, cell, 2)
        value = None
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            try:
                exec(compiled.body, self.namespace)
                if compiled.trailing_expr is not None:
                    value = eval(compiled.trailing_expr, self.namespace)
            except KeyboardInterrupt:
                return INTERRUPTED
            except Exception as exc:
                # Drop this frame from the traceback - it's not user code
                tb = exc.__traceback__.tb_next if exc.__traceback__ else None
                stderr.write("".join(traceback.format_exception(type(exc), exc, tb)))
                return EVALUATION_EXCEPTION

        if value is not None:
            self.namespace["_"] = value
            representations = [repr(value)]
            as_str = str(value)
            if as_str != representations[0]:
                representations.append(as_str)
            self.send_event(
                "result",
                cell,
                type=type(value).__name__,
                representations=representations,
            )
        return SUCCESS

    ## packages

    @staticmethod
    def _installed(package: dict) -> bool:
        try:
            version = importlib.metadata.version(package["id"])
        except importlib.metadata.PackageNotFoundError:
            return False
        wanted = package.get("version")
        return not wanted or wanted == version

    @staticmethod
    def _pip_install(requirement: str) -> bool:
        proc = subprocess.run(
            [sys.executable, "-m", "pip", "install", "-q", requirement],
            stdout=sys.stderr,
            stderr=sys.stderr,
        )
        return proc.returncode == 0

    def restore(self, packages: List[dict]) -> dict:
        restored, missing = [], []
        for package in packages:
            version = package.get("version")
            requirement = f"{package['id']}=={version}" if version else package["id"]
            if self._installed(package):
                restored.append(requirement)
            elif self.install_packages and self._pip_install(requirement):
                restored.append(requirement)
            else:
                missing.append(requirement)
        importlib.invalidate_caches()
        return dict(restored=restored, missing=missing)

    ## requests

    def shutdown(self):
        self.running = False

    def handle(self, request: dict) -> dict:
        ops = {
            "evaluate": self.evaluate,
            "restore": self.restore,
            "shutdown": self.shutdown,
        }
        req_id = request.get("id")
        args = request.get("args", {})
        try:
            op = ops[request["op"]]
        except KeyError:
            return dict(id=req_id, ok=False, error=f"Unknown op: {request.get('op')}")

        try:
            value = op(**args)
        except Exception as exc:
            return dict(id=req_id, ok=False, error=f"{type(exc).__name__}: {exc}")
        return dict(id=req_id, ok=True, value=value)

    def hello(self) -> dict:
        return dict(
            event="ready",
            python=platform.python_version(),
            pid=os.getpid(),
            time=now_str(),
        )

    def serve(self, instream):
        """Handle requests from INSTREAM until it closes or shutdown"""
        self.writer.send(self.hello())
        for line in instream:
            if not line.strip():
                continue
            self.writer.send(self.handle(decode(line)))
            if not self.running:
                break
