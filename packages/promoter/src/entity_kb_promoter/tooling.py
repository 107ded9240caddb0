"""External schema tooling invoked during promotion.

The in-process storage handle cannot see tables created after it was built,
so the promoted table is created by separate processes: one that regenerates
storage bindings (an alembic autogenerate revision from the new model) and
one that migrates the structure (alembic upgrade). Both sit behind the
SchemaTooling protocol so tests can substitute fakes.
"""

import asyncio
import os
import shlex
from pathlib import Path
from typing import Optional, Protocol, Union

from entity_kb_common import Settings, ToolingError, get_logger, get_settings

logger = get_logger(__name__)

# Characters of combined output kept on a ToolingError
OUTPUT_TAIL_CHARS = 2000

# Environment variable read by Settings.artifact_dir in the child process
ARTIFACT_DIR_ENV = "ARTIFACT_DIR"


class SchemaTooling(Protocol):
    """Capability interface for the external schema tooling."""

    async def regenerate_bindings(self, type_name: str) -> None: ...

    async def migrate_structure(self, type_name: str) -> None: ...


class AlembicTooling:
    """Runs the configured alembic commands as subprocesses.

    Commands are split with shlex and "{type_name}" is substituted in each
    argument. Output (stdout and stderr combined) is captured.

    When artifact_dir is set, it is resolved to an absolute path and exported
    to the child as ARTIFACT_DIR, so the alembic environment loads the models
    from the directory the artifact was written to, whatever the workdir.
    """

    def __init__(
        self,
        bindings_command: str,
        migrate_command: str,
        workdir: Union[str, Path] = ".",
        artifact_dir: Optional[Union[str, Path]] = None,
    ):
        self.bindings_command = bindings_command
        self.migrate_command = migrate_command
        self.workdir = Path(workdir)
        self.artifact_dir = Path(artifact_dir).resolve() if artifact_dir is not None else None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        artifact_dir: Optional[Union[str, Path]] = None,
    ) -> "AlembicTooling":
        """Build from settings; artifact_dir overrides settings.artifact_dir."""
        settings = settings or get_settings()
        return cls(
            bindings_command=settings.bindings_command,
            migrate_command=settings.migrate_command,
            workdir=settings.tooling_workdir,
            artifact_dir=artifact_dir or settings.artifact_dir,
        )

    async def regenerate_bindings(self, type_name: str) -> None:
        await self._run("regenerate_bindings", self.bindings_command, type_name)

    async def migrate_structure(self, type_name: str) -> None:
        await self._run("migrate_structure", self.migrate_command, type_name)

    def build_args(self, command: str, type_name: str) -> list[str]:
        try:
            args = [arg.replace("{type_name}", type_name) for arg in shlex.split(command)]
        except ValueError as e:
            raise ToolingError(f"Invalid tooling command {command!r}: {e}", command=command) from e
        if not args:
            raise ToolingError("Tooling command is empty", command=command)
        return args

    def child_env(self) -> dict[str, str]:
        """Environment for the tooling subprocess."""
        env = dict(os.environ)
        if self.artifact_dir is not None:
            env[ARTIFACT_DIR_ENV] = str(self.artifact_dir)
        return env

    async def _run(self, step: str, command: str, type_name: str) -> None:
        args = self.build_args(command, type_name)
        rendered = shlex.join(args)

        logger.info(
            "tooling_started",
            step=step,
            command=rendered,
            workdir=str(self.workdir),
            artifact_dir=str(self.artifact_dir) if self.artifact_dir else None,
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=self.workdir,
                env=self.child_env(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.error("tooling_failed", step=step, command=rendered, error=str(e))
            raise ToolingError(f"{step} could not start {args[0]!r}: {e}", command=rendered) from e

        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            await process.wait()
            logger.warning("tooling_cancelled", step=step, command=rendered)
            raise

        output = stdout.decode("utf-8", errors="replace")[-OUTPUT_TAIL_CHARS:]

        if process.returncode != 0:
            logger.error(
                "tooling_failed",
                step=step,
                command=rendered,
                returncode=process.returncode,
                output=output,
            )
            raise ToolingError(
                f"{step} failed with exit code {process.returncode}: {rendered}",
                command=rendered,
                output=output,
            )

        logger.info("tooling_finished", step=step, command=rendered)
