from __future__ import annotations

import textwrap
from dataclasses import dataclass
from pathlib import Path

from . import runtime

RUNTIME_MODULE = "_pyscratch_runtime"
USER_MODULE = "user_transform"

_MAIN_TEMPLATE = textwrap.dedent("""\
    # === Auto-generated by pyscratch; rebuilt on every run ===
    import sys

    import {runtime_module} as _runtime

    if __name__ == "__main__":
        sys.exit(_runtime.main(sys.argv, {user_module!r}))
""")


@dataclass(frozen=True)
class HarnessFiles:
    """The sources that make up one transform bundle, all in one directory."""

    main: Path
    runtime: Path
    user_script: Path

    def entry_sources(self) -> list[Path]:
        return [self.main, self.runtime, self.user_script]


class TransformHarnessBuilder:
    """
    Generates the wrapper program around a user transform script.

    The wrapper reads the input path from argv, classifies it, calls the user's
    `transform` function and prints its JSON serialization.
    """

    def __init__(self, runtime_module: str = RUNTIME_MODULE, user_module: str = USER_MODULE) -> None:
        self.runtime_module = runtime_module
        self.user_module = user_module

    def build(self) -> str:
        return _MAIN_TEMPLATE.format(runtime_module=self.runtime_module, user_module=self.user_module)

    def runtime_source(self) -> str:
        return Path(runtime.__file__).read_text(encoding="utf-8")

    def user_script_name(self) -> str:
        return f"{self.user_module}.py"

    def write(self, workspace: Path, user_script: bytes) -> HarnessFiles:
        """Materializes the wrapper, runtime and user script into workspace."""
        main = workspace / "__main__.py"
        rt = workspace / f"{self.runtime_module}.py"
        user = workspace / self.user_script_name()

        main.write_text(self.build(), encoding="utf-8")
        rt.write_text(self.runtime_source(), encoding="utf-8")
        user.write_bytes(user_script)
        return HarnessFiles(main=main, runtime=rt, user_script=user)
