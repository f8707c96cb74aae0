"""Credential source detection.

Three read-only probes, each answering "is there an existing Microsoft
identity on this machine we could reuse?":

1. Azure CLI: ``az account show`` succeeds only when a user is logged in.
2. VS Code Azure Account extension: presence of its azure.json cache file.
   The file is never opened.
3. Platform credential vault: entry labels only (``cmdkey /list`` on Windows,
   ``security dump-keychain`` on macOS). Secrets are never read.

Probes run concurrently. A failing probe is reported as an unavailable
source with the error in ``details`` and never affects the others. The
result is always ordered by SOURCE_PRIORITY, independent of completion order.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shutil
import sys
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import structlog

from src.auth.models import (
    SOURCE_PRIORITY,
    CredentialSource,
    CredentialSourceType,
    DetectionResult,
)
from src.constants import VAULT_LABEL_PREFIXES
from src.infra.errors import CredentialProbeError

logger = structlog.get_logger()

_VSCODE_PRODUCTS = ("Code", "Code - Insiders")
_VSCODE_CACHE = Path("User", "globalStorage", "ms-vscode.azure-account", "azure.json")

_KEYCHAIN_LABEL_RE = re.compile(r'"labl"<blob>="(?P<label>[^"]*)"')


async def run_command(args: Sequence[str], *, timeout: float) -> tuple[int, str, str]:
    """Run a command without a shell and return (returncode, stdout, stderr).

    Raises CredentialProbeError on timeout. The child is killed on timeout
    and on cancellation.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        async with asyncio.timeout(timeout):
            stdout, stderr = await proc.communicate()
    except TimeoutError:
        _kill(proc)
        await proc.wait()
        raise CredentialProbeError(
            f"'{args[0]}' did not finish within {timeout:g}s", code="PROBE_TIMEOUT"
        ) from None
    except asyncio.CancelledError:
        _kill(proc)
        raise
    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class CredentialProbe(ABC):
    """One detection mechanism. Must not modify any external state."""

    source_type: CredentialSourceType

    @abstractmethod
    async def probe(self) -> CredentialSource:
        ...

    def unavailable(self, **details: object) -> CredentialSource:
        return CredentialSource(type=self.source_type, available=False, details=dict(details))


class AzureCliProbe(CredentialProbe):
    source_type = CredentialSourceType.azure_cli

    def __init__(self, executable: str = "az", *, timeout: float = 15.0) -> None:
        self._executable = executable
        self._timeout = timeout

    async def probe(self) -> CredentialSource:
        path = shutil.which(self._executable)
        if path is None:
            return self.unavailable(reason="not_installed")

        code, stdout, stderr = await run_command(
            [path, "account", "show", "--output", "json"], timeout=self._timeout
        )
        if code != 0:
            return self.unavailable(reason="not_logged_in", stderr=stderr.strip()[:500])

        try:
            account = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CredentialProbeError(f"Unparsable 'az account show' output: {e}") from e

        user = account.get("user") or {}
        return CredentialSource(
            type=self.source_type,
            available=True,
            tenant_id=account.get("tenantId"),
            user_principal_name=user.get("name"),
            display_name=user.get("name"),
            details={
                "executable": path,
                "subscriptionId": account.get("id"),
                "subscriptionName": account.get("name"),
                "environmentName": account.get("environmentName"),
                "homeTenantId": account.get("homeTenantId"),
            },
        )


def vscode_config_roots(platform: str | None = None) -> list[Path]:
    """Per-platform directories that hold VS Code product config folders."""
    platform = platform or sys.platform
    if platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    elif platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg) if xdg else Path.home() / ".config"
    return [base / product for product in _VSCODE_PRODUCTS]


class VsCodeProbe(CredentialProbe):
    source_type = CredentialSourceType.vscode

    def __init__(self, roots: Sequence[Path] | None = None) -> None:
        self._roots = list(roots) if roots is not None else vscode_config_roots()

    async def probe(self) -> CredentialSource:
        candidates = [root / _VSCODE_CACHE for root in self._roots]
        found = await asyncio.to_thread(lambda: [p for p in candidates if p.is_file()])
        if not found:
            return self.unavailable(reason="not_signed_in", searched=[str(p) for p in candidates])
        return CredentialSource(
            type=self.source_type,
            available=True,
            details={"path": str(found[0])},
        )


def parse_cmdkey_targets(output: str) -> list[str]:
    """Extract credential targets from ``cmdkey /list`` output."""
    targets = []
    for line in output.splitlines():
        line = line.strip()
        if not line.lower().startswith("target:"):
            continue
        target = line.split(":", 1)[1].strip()
        if "target=" in target:
            target = target.split("target=", 1)[1]
        targets.append(target)
    return targets


def parse_keychain_labels(output: str) -> list[str]:
    """Extract item labels from ``security dump-keychain`` output."""
    return [m.group("label") for m in _KEYCHAIN_LABEL_RE.finditer(output)]


def matching_labels(labels: Sequence[str]) -> list[str]:
    return [label for label in labels if label.startswith(VAULT_LABEL_PREFIXES)]


class CredentialVaultProbe(CredentialProbe):
    source_type = CredentialSourceType.credential_vault

    def __init__(self, *, platform: str | None = None, timeout: float = 15.0) -> None:
        self._platform = platform or sys.platform
        self._timeout = timeout

    async def probe(self) -> CredentialSource:
        if self._platform == "win32":
            args, parse = ["cmdkey", "/list"], parse_cmdkey_targets
        elif self._platform == "darwin":
            args, parse = ["security", "dump-keychain"], parse_keychain_labels
        else:
            return self.unavailable(reason="unsupported_platform", platform=self._platform)

        path = shutil.which(args[0])
        if path is None:
            return self.unavailable(reason="not_installed", tool=args[0])

        code, stdout, stderr = await run_command([path, *args[1:]], timeout=self._timeout)
        if code != 0:
            return self.unavailable(reason="vault_unreadable", stderr=stderr.strip()[:500])

        matches = matching_labels(parse(stdout))
        if not matches:
            return self.unavailable(reason="no_microsoft_entries")
        return CredentialSource(
            type=self.source_type,
            available=True,
            details={"entries": len(matches), "labels": matches[:10]},
        )


def default_probes(
    *, cli_executable: str = "az", timeout: float = 15.0
) -> list[CredentialProbe]:
    return [
        AzureCliProbe(cli_executable, timeout=timeout),
        VsCodeProbe(),
        CredentialVaultProbe(timeout=timeout),
    ]


class CredentialDetector:
    """Runs every probe concurrently and orders the results by priority."""

    def __init__(self, probes: Sequence[CredentialProbe]) -> None:
        self._probes = list(probes)

    async def detect(self) -> DetectionResult:
        results = await asyncio.gather(*(self._run_probe(p) for p in self._probes))
        rank = {t: i for i, t in enumerate(SOURCE_PRIORITY)}
        ordered = sorted(results, key=lambda s: rank.get(s.type, len(rank)))
        result = DetectionResult(sources=tuple(ordered))

        preferred = result.preferred()
        logger.info(
            "credential_detection_complete",
            available=[s.type.value for s in result.available()],
            preferred=preferred.type.value if preferred else None,
        )
        return result

    async def _run_probe(self, probe: CredentialProbe) -> CredentialSource:
        try:
            return await probe.probe()
        except Exception as e:
            logger.warning(
                "credential_probe_failed",
                source=probe.source_type.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return probe.unavailable(reason="probe_failed", error=str(e))
