"""Starting binaries, builds and containers for integration tests."""

from __future__ import annotations

import os
import subprocess
from typing import Callable, Sequence


class ProcessError(RuntimeError):
    """Raised when a program cannot be started or reports failure."""


def run_binary(bin_path: str, *args: str) -> Callable[[], None]:
    """Start a binary in the background; the returned callable kills it."""
    path = os.path.abspath(bin_path)
    try:
        process = subprocess.Popen([path, *args])
    except OSError as exc:
        raise ProcessError(str(exc)) from exc

    def stop() -> None:
        if process.poll() is None:
            process.kill()
        process.wait()

    return stop


def build_go_source(package_path: str, output: str) -> Callable[[], None]:
    """Build a Go package into output; the returned callable removes the binary."""
    try:
        result = subprocess.run(
            ["go", "build", "-o", output, package_path],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as exc:
        raise ProcessError(f"unable to build package: {exc} ()") from exc
    if result.returncode != 0:
        text = (result.stdout or b"").decode(errors="replace")
        raise ProcessError(f"unable to build package: exit status {result.returncode} ({text})")

    def remove() -> None:
        os.remove(output)

    return remove


def run_container(
    image: str, docker_args: Sequence[str], runtime_args: Sequence[str]
) -> Callable[[], None]:
    """Start a detached docker container; the returned callable kills it."""
    command = ["docker", "run", "-d", *docker_args, image, *runtime_args]
    try:
        result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    except OSError as exc:
        raise ProcessError(f"{exc}: ") from exc
    text = (result.stdout or b"").decode(errors="replace")
    if result.returncode != 0:
        raise ProcessError(f"exit status {result.returncode}: {text}")
    container_id = text.split("\n")[0]

    def kill() -> None:
        try:
            outcome = subprocess.run(
                ["docker", "kill", container_id],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessError(str(exc)) from exc
        if outcome.returncode != 0:
            raise ProcessError(f"exit status {outcome.returncode}")

    return kill