"""
Helpers for locating and running the Node.js tools the build drives
(babel, webpack and the scripts under tools/), and the long-lived
sessions that keep babel and webpack loaded between requests.
"""

import os
import json
import shutil
import asyncio
import logging
from pathlib import Path
from typing import Optional, Callable, Dict, Any, List, Tuple

from ..errors import CompileError

logger = logging.getLogger(__name__)


def find_tool(tool_name: str, project_root: Path) -> Path:
    """Find executable path for a node tool."""
    # 1. Check the project's node_modules/.bin
    local_bin = project_root / "node_modules" / ".bin" / tool_name
    if os.name == "nt":
        local_bin = local_bin.with_suffix(".cmd")

    if local_bin.exists():
        return local_bin

    # 2. Check system PATH
    system_path = shutil.which(tool_name)
    if system_path:
        return Path(system_path)

    # 3. Fallback to just the command name (hope it's in path at runtime)
    return Path(tool_name)


async def run_node_tool(
    cmd: List[str],
    cwd: Path,
    log_callback: Optional[Callable] = None,
    label: str = "node",
) -> Tuple[int, str, str]:
    """
    Run a node tool to completion.

    Args:
        cmd: Command and arguments
        cwd: Working directory
        log_callback: Async callback receiving each stderr line
        label: Prefix for logged lines

    Returns:
        (returncode, stdout, stderr)

    Raises:
        FileNotFoundError: if the executable does not exist
    """
    logger.debug(f"Running: {' '.join(cmd)}")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")

    for line in err.splitlines():
        line = line.rstrip()
        if line:
            logger.debug(f"  {label}: {line}")
            if log_callback:
                await log_callback(f"  {label}: {line}")

    return process.returncode, out, err


# Result lines of a session script start with this prefix; anything else a
# loader or plugin prints to stdout is passed through to the debug log.
RESULT_PREFIX = "@@mathbuild "


class NodeSession:
    """
    A node script kept alive across requests.

    Requests are JSON lines on stdin. Each request is answered by exactly one
    stdout line starting with RESULT_PREFIX. A session whose process has
    exited is spawned again on the next start().
    """

    def __init__(self, node_bin: str, script: Path, cwd: Path, name: str = "NodeSession"):
        self.node_bin = node_bin
        self.script = script
        self.cwd = cwd
        self.name = name
        self.process: Optional[asyncio.subprocess.Process] = None
        self.last_returncode: Optional[int] = None
        self._lock = asyncio.Lock()

    @property
    def alive(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def start(self, *args: str):
        """Spawn the script unless a live process is already there."""
        if self.alive:
            return
        if self.process is not None:
            self.last_returncode = self.process.returncode
            logger.warning(f"[{self.name}] Process exited with code {self.last_returncode}, restarting")
            self.process = None

        try:
            self.process = await asyncio.create_subprocess_exec(
                self.node_bin,
                str(self.script),
                *args,
                cwd=str(self.cwd),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=16 * 1024 * 1024,
            )
        except FileNotFoundError:
            raise CompileError(f"{self.node_bin} not found. Please install Node.js first.")

        logger.info(f"[{self.name}] Started (pid {self.process.pid})")

    async def request(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Send one request and wait for its result.

        Returns:
            The decoded result, or None when the process died before answering

        Raises:
            CompileError: if the result line is not a JSON object
        """
        async with self._lock:
            if self.process is None:
                return None

            line = json.dumps(payload) + "\n"
            try:
                self.process.stdin.write(line.encode("utf-8"))
                await self.process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                await self._reap()
                return None

            while True:
                raw = await self.process.stdout.readline()
                if not raw:
                    await self._reap()
                    return None
                text = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if text.startswith(RESULT_PREFIX):
                    break
                if text.strip():
                    logger.debug(f"  {self.name}: {text}")

        try:
            result = json.loads(text[len(RESULT_PREFIX):])
        except json.JSONDecodeError as e:
            raise CompileError(f"Unreadable {self.name} result: {e}")
        if not isinstance(result, dict):
            raise CompileError(f"Unreadable {self.name} result: {text}")
        return result

    async def _reap(self):
        self.last_returncode = await self.process.wait()
        self.process = None
        logger.warning(f"[{self.name}] Process exited with code {self.last_returncode}")

    async def close(self):
        """Close stdin and wait for the script to finish, killing it after 30s."""
        if self.process is None:
            return
        if self.process.returncode is None:
            self.process.stdin.close()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=30)
            except asyncio.TimeoutError:
                logger.warning(f"[{self.name}] Did not exit, killing it")
                self.process.kill()
                await self.process.wait()
        self.process = None
        logger.info(f"[{self.name}] Closed")


def check_build_prerequisites(project_root: Path, node_bin: str = "node") -> Dict[str, Any]:
    """Check if all build prerequisites are available"""
    node_path = shutil.which(node_bin)
    node_available = node_path is not None

    result = {"node": {"available": node_available, "path": node_path}}

    for tool in ("babel", "webpack"):
        path = find_tool(tool, project_root)
        available = path.exists() or shutil.which(tool) is not None
        result[tool] = {"available": available, "path": str(path) if available else None}

    result["all_ready"] = all(entry["available"] for entry in result.values())
    return result
