"""Run the terraform CLI as a child process and collect its output."""
import asyncio
import codecs
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from terraform_api.config import settings

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class CommandSpec:
    """One invocation of the provisioning tool. Arguments are passed as argv, never through a shell."""
    binary: str
    subcommand: str
    working_dir: str
    args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> List[str]:
        return [self.binary, self.subcommand, *self.args]

    @property
    def command(self) -> str:
        return f"{os.path.basename(self.binary)} {self.subcommand}"


@dataclass
class CommandResult:
    command: str
    success: bool
    output: str = ""
    error_output: str = ""
    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None
    timed_out: bool = False

    def describe(self) -> str:
        """Human readable failure summary."""
        if self.success:
            return f"{self.command} succeeded"
        if self.spawn_error:
            return f"{self.command} could not be started: {self.spawn_error}"
        if self.timed_out:
            return f"{self.command} timed out and was terminated"
        detail = self.error_output.strip() or self.output.strip()
        return f"{self.command} exited with code {self.exit_code}: {detail}"


class ProcessRunner:
    def __init__(self, timeout: Optional[float] = None, kill_grace_seconds: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.command_timeout_seconds
        self.kill_grace_seconds = (
            kill_grace_seconds if kill_grace_seconds is not None else settings.process_kill_grace_seconds
        )

    async def run(self, spec: CommandSpec) -> CommandResult:
        """
        Start the command and wait for it to finish.

        stdout and stderr are read as they arrive; every chunk is logged
        immediately and appended to the aggregated buffers. The command is
        terminated (then killed) if it outlives the configured timeout.
        """
        command = spec.command
        logger.info(f"Running {command} {' '.join(spec.args)} in {spec.working_dir}".rstrip())

        env = os.environ.copy()
        env.update(spec.env)
        try:
            proc = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.working_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error(f"Failed to start {command}: {e}")
            return CommandResult(command=command, success=False, spawn_error=str(e))

        stdout_chunks: List[str] = []
        stderr_chunks: List[str] = []

        async def communicate() -> int:
            await asyncio.gather(
                self._pump(proc.stdout, stdout_chunks, logging.INFO),
                self._pump(proc.stderr, stderr_chunks, logging.WARNING),
            )
            return await proc.wait()

        timed_out = False
        try:
            await asyncio.wait_for(communicate(), timeout=self.timeout or None)
        except asyncio.TimeoutError:
            timed_out = True
            logger.error(f"{command} exceeded {self.timeout}s, terminating")
            await self._terminate(proc)
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        output = "".join(stdout_chunks)
        error_output = "".join(stderr_chunks)
        if not timed_out and proc.returncode == 0:
            return CommandResult(command=command, success=True, output=output, exit_code=0)
        return CommandResult(
            command=command,
            success=False,
            output=output,
            error_output=error_output,
            exit_code=proc.returncode,
            timed_out=timed_out,
        )

    async def _pump(self, stream: asyncio.StreamReader, chunks: List[str], level: int) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            chunk = decoder.decode(data)
            if chunk:
                chunks.append(chunk)
                logger.log(level, chunk.rstrip())
        tail = decoder.decode(b"", final=True)
        if tail:
            chunks.append(tail)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_seconds)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        except ProcessLookupError:
            pass
