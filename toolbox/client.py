import json
import logging
import os
import queue
import subprocess
import sys
import threading
import time
from typing import Any, Dict, List, Optional

PROTOCOL_VERSION = "2024-11-05"
SERVER_COMMAND = [sys.executable, "-m", "toolbox.server"]


class MCPClientError(Exception):
    pass


class MCPStdIOClient:
    """JSON-RPC 2.0 client for the toolbox server over stdio.

    Usage:
        with MCPStdIOClient() as client:
            print(client.call_tool("get-forecast", {"latitude": 39.74, "longitude": -104.99}))

    The server's stderr is mirrored into ``<LOG_DIR>/mcp_server.log``.
    """

    def __init__(self, command: Optional[List[str]] = None, cwd: str = ".", timeout: float = 30.0,
                 log_file: Optional[str] = None, log_level: int = logging.INFO):
        self.command = command or list(SERVER_COMMAND)
        self.cwd = cwd
        self.timeout = timeout
        self.proc: Optional[subprocess.Popen] = None
        self._id = 0
        self._pending: Dict[int, queue.Queue] = {}
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._reader_thread: Optional[threading.Thread] = None
        self._running = False

        log_dir = os.environ.get("LOG_DIR", "logs")
        self.log_file = os.path.abspath(log_file or os.path.join(log_dir, "mcp_server.log"))
        os.makedirs(os.path.dirname(self.log_file), exist_ok=True)

        self.logger = logging.getLogger("toolbox.client")
        # One handler per log file, even with several clients alive
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == self.log_file
                   for h in self.logger.handlers):
            handler = logging.FileHandler(self.log_file)
            handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
            self.logger.addHandler(handler)
        self.logger.setLevel(log_level)
        self.logger.propagate = False

    def __enter__(self) -> "MCPStdIOClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def is_running(self) -> bool:
        return self.proc is not None and self.proc.poll() is None

    def start(self) -> None:
        if self.proc:
            return

        self.proc = subprocess.Popen(
            self.command,
            cwd=self.cwd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            bufsize=0
        )

        self._running = True
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()
        threading.Thread(target=self._stderr_loop, daemon=True).start()

        init_params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "toolbox-client", "version": "1.0.0"}
        }
        try:
            resp = self._send_request("initialize", init_params)
        except MCPClientError:
            self.stop()
            raise
        server_info = (resp or {}).get("serverInfo", {})
        self.logger.info(f"[MCP client] Connected to {server_info.get('name', 'unknown server')}")
        self._send_notification("notifications/initialized")

    def stop(self) -> None:
        self._running = False
        if not self.proc:
            return
        try:
            self.proc.terminate()
            try:
                self.proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                self.proc.kill()
        except OSError as e:
            self.logger.warning(f"[MCP client] Failed to stop server process: {e}")
        self.proc = None

    def _stderr_loop(self) -> None:
        proc = self.proc
        if not proc or not proc.stderr:
            return
        with proc.stderr:
            for line in iter(proc.stderr.readline, b""):
                msg = line.decode("utf-8", errors="ignore").rstrip()
                if msg:
                    self.logger.info(f"[MCP server] {msg}")

    def _reader_loop(self) -> None:
        """Read newline-delimited JSON messages from stdout."""
        proc = self.proc
        if not proc or not proc.stdout:
            return

        while self._running:
            line = proc.stdout.readline()
            if not line:
                if proc.poll() is not None:
                    break
                time.sleep(0.01)
                continue

            text = line.decode('utf-8', errors='ignore').strip()
            if not text:
                continue
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                self.logger.info(f"[MCP server output] {text}")
                continue
            self._handle_message(message)

    def _handle_message(self, message: Dict[str, Any]) -> None:
        """Route a response to the request waiting for it; notifications are dropped."""
        msg_id = message.get('id')
        if msg_id is None:
            return
        with self._lock:
            q = self._pending.get(msg_id)
        if q:
            q.put(message)
        else:
            self.logger.warning(f"[MCP client] Received response for unknown id: {msg_id}")

    def _next_id(self) -> int:
        with self._lock:
            self._id += 1
            return self._id

    def _send_notification(self, method: str, params: Any = None) -> None:
        """Send a JSON-RPC notification (no response expected)."""
        if not self.is_running:
            raise MCPClientError('MCP server is not running')

        request = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            request["params"] = params
        self._write_message(request)

    def _send_request(self, method: str, params: Any = None) -> Any:
        """Send a JSON-RPC request and wait for response."""
        if not self.is_running:
            raise MCPClientError('MCP server is not running')

        req_id = self._next_id()
        request = {"jsonrpc": "2.0", "method": method, "id": req_id}
        if params is not None:
            request["params"] = params

        q: queue.Queue = queue.Queue()
        with self._lock:
            self._pending[req_id] = q

        try:
            self._write_message(request)
            try:
                msg = q.get(timeout=self.timeout)
            except queue.Empty:
                raise MCPClientError(f'Timeout waiting for response to {method}')

            if 'error' in msg:
                error = msg['error']
                raise MCPClientError(f"{error.get('message', 'Unknown error')}")
            return msg.get('result')
        finally:
            with self._lock:
                self._pending.pop(req_id, None)

    def _write_message(self, message: Dict[str, Any]) -> None:
        """Write a newline-delimited JSON message to stdin."""
        payload = json.dumps(message) + "\n"
        try:
            with self._write_lock:
                self.proc.stdin.write(payload.encode('utf-8'))
                self.proc.stdin.flush()
        except (OSError, ValueError) as e:
            raise MCPClientError(f"Failed to write to MCP server: {e}")

    def list_tools(self) -> List[Dict[str, Any]]:
        result = self._send_request("tools/list", {})
        return (result or {}).get("tools", [])

    def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        """Call a tool and return the text of its response envelope.

        Raises MCPClientError when the server rejects the call, e.g. for
        arguments that fail the tool's input schema.
        """
        result = self._send_request("tools/call", {"name": tool_name, "arguments": arguments})
        if not isinstance(result, dict):
            return "" if result is None else str(result)

        text = "\n".join(
            block.get("text", "") for block in result.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        if result.get("isError"):
            raise MCPClientError(text or f"Tool {tool_name} failed")
        return text

    def call_method(self, method: str, params: Any) -> Any:
        """Generic method call (use call_tool for tools)."""
        return self._send_request(method, params)
