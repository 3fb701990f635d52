from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

import pytest

from pyscratch.execute import engine as engine_module
from pyscratch.execute.runner import SubprocessRunner

# Starts a grandchild that inherits stdout/stderr, then sleeps itself.
_SCRIPT = """\
import subprocess, sys, time
subprocess.Popen([sys.executable, "-c", "import time; time.sleep(15)"])
print("started", flush=True)
time.sleep(15)
"""


def test_runner_forwards_output_and_exit_code(tmp_path: Path) -> None:
    script = tmp_path / "echo.py"
    script.write_text("import sys\nprint(sys.argv[1])\nsys.exit(3)\n", encoding="utf-8")
    out: list[bytes] = []

    async def scenario() -> int:
        child = await SubprocessRunner(sys.executable).spawn(script, ["hello"], cwd=tmp_path, on_stdout=out.append)
        return await child.wait()

    assert asyncio.run(scenario()) == 3
    assert b"".join(out).strip() == b"hello"


def test_kill_returns_even_if_a_grandchild_holds_the_pipes(tmp_path: Path) -> None:
    script = tmp_path / "spawner.py"
    script.write_text(_SCRIPT, encoding="utf-8")

    async def scenario() -> float:
        started = asyncio.Event()
        child = await SubprocessRunner(sys.executable).spawn(
            script, [], cwd=tmp_path, on_stdout=lambda chunk: started.set()
        )
        await asyncio.wait_for(started.wait(), timeout=10)

        t0 = time.monotonic()
        child.kill()
        await asyncio.wait_for(child.wait(), timeout=4)
        return time.monotonic() - t0

    assert asyncio.run(scenario()) < 4


def test_reap_gives_up_on_a_child_that_never_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(engine_module, "_REAP_TIMEOUT", 0.05)

    async def scenario() -> asyncio.Future:
        waiter = asyncio.ensure_future(asyncio.Event().wait())
        await engine_module._reap(waiter)
        return waiter

    waiter = asyncio.run(scenario())
    assert waiter.cancelled()
