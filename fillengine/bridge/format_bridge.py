"""Convert flow-layout documents to PDF with an external headless converter."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

from fillengine.utils.errors import ConversionFailed, ConversionTimeout

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("soffice",)
_TERMINATE_GRACE_SECONDS = 0.5


class FormatBridge:
    """Run `<command> --headless --convert-to pdf --outdir DIR INPUT` under a hard timeout."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        *,
        timeout_seconds: float = 60.0,
    ) -> None:
        if not command:
            raise ValueError("converter command must not be empty")
        self._command = list(command)
        self._timeout_seconds = timeout_seconds

    async def to_paginated_output(self, content: bytes) -> bytes:
        """Return PDF bytes for docx bytes; nothing partial is ever returned."""

        with tempfile.TemporaryDirectory(prefix="fillengine-convert-") as raw_dir:
            work_dir = Path(raw_dir)
            source = work_dir / "document.docx"
            out_dir = work_dir / "out"
            out_dir.mkdir()
            source.write_bytes(content)

            await self._run(
                [
                    *self._command,
                    "--headless",
                    "--convert-to",
                    "pdf",
                    "--outdir",
                    str(out_dir),
                    str(source),
                ],
                work_dir,
            )

            produced = out_dir / "document.pdf"
            if not produced.exists():
                raise ConversionFailed(
                    "converter finished without producing a PDF",
                    detail={"command": self._command[0]},
                )
            return produced.read_bytes()

    async def _run(self, argv: list[str], cwd: Path) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ConversionFailed(
                f"converter could not be started: {exc}",
                detail={"command": argv[0]},
            ) from exc

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            terminated = await _terminate(process)
            logger.warning(
                "converter exceeded %.1fs and was stopped (terminated=%s)",
                self._timeout_seconds,
                terminated,
            )
            raise ConversionTimeout(
                timeout_seconds=self._timeout_seconds, terminated=terminated
            ) from exc
        finally:
            if process.returncode is None:
                await _terminate(process)

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()[:500]
            raise ConversionFailed(
                f"converter exited with status {process.returncode}",
                detail={"returncode": process.returncode, "stderr": message},
            )


async def _terminate(process: asyncio.subprocess.Process) -> bool:
    """Terminate, then kill, and wait for the process to exit."""

    if process.returncode is not None:
        return True

    try:
        process.terminate()
    except ProcessLookupError:
        return True
    try:
        await asyncio.wait_for(process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            return True
        try:
            await asyncio.wait_for(process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            return False
    return process.returncode is not None
