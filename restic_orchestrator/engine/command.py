"""
Typed command builder for the backup engine.

Commands are assembled as argument lists:
``engine <subcommand> [--repo <locator>] [subcommand args] [pass-through args]``
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

_CREDENTIALS_RE = re.compile(r"(://[^/:@\s]+):[^@/\s]+@")


@dataclass(frozen=True)
class EngineCommand:
    """One engine invocation"""
    subcommand: Tuple[str, ...]
    args: Tuple[str, ...] = ()
    passthrough: Tuple[str, ...] = ()
    needs_repository: bool = True

    @property
    def name(self) -> str:
        return " ".join(self.subcommand)

    def argv(self, executable: str, repository: str) -> List[str]:
        argv = [executable, *self.subcommand]
        if self.needs_repository:
            argv += ["--repo", repository]
        return argv + list(self.args) + list(self.passthrough)


def redact(argv: Sequence[str]) -> str:
    """Render an argument list for logs with URL credentials masked"""
    return " ".join(_CREDENTIALS_RE.sub(r"\1:***@", arg) for arg in argv)


class CommandBuilder:
    """Builds EngineCommand objects for each supported subcommand"""

    @staticmethod
    def list_locks() -> EngineCommand:
        return EngineCommand(("list", "locks"), ("--no-lock",))

    @staticmethod
    def unlock() -> EngineCommand:
        return EngineCommand(("unlock",))

    @staticmethod
    def backup(
        paths: Iterable[Path],
        tag: str,
        exclude_files: Iterable[Path] = (),
        use_snapshot: bool = False,
        extra_args: Sequence[str] = ()
    ) -> EngineCommand:
        args: List[str] = ["--tag", tag]
        args += [f"--exclude-file={f}" for f in exclude_files]
        if use_snapshot:
            args.append("--use-fs-snapshot")
        args += [str(p) for p in paths]
        return EngineCommand(("backup",), tuple(args), tuple(extra_args))

    @staticmethod
    def forget(retention_policy: Sequence[str], extra_args: Sequence[str] = ()) -> EngineCommand:
        return EngineCommand(("forget",), tuple(retention_policy), tuple(extra_args))

    @staticmethod
    def prune(prune_policy: Sequence[str], extra_args: Sequence[str] = ()) -> EngineCommand:
        return EngineCommand(("prune",), tuple(prune_policy), tuple(extra_args))

    @staticmethod
    def check(read_data: bool = False, extra_args: Sequence[str] = ()) -> EngineCommand:
        args = ("--read-data",) if read_data else ()
        return EngineCommand(("check",), args, tuple(extra_args))

    @staticmethod
    def self_update() -> EngineCommand:
        return EngineCommand(("self-update",), needs_repository=False)

    @staticmethod
    def init() -> EngineCommand:
        return EngineCommand(("init",))

    @staticmethod
    def version() -> EngineCommand:
        return EngineCommand(("version",), needs_repository=False)
