"""tools/docker.py

Container-engine command builders.

Pure helpers: they only build argv lists. Execution (and the decision whether
a non-zero exit is fatal) belongs to the stage that calls them.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence


def build_command(
    *,
    image_name: str,
    tags: Sequence[str],
    build_args: Mapping[str, str],
    dockerfile: str = "Dockerfile",
    context_dir: str = ".",
) -> List[str]:
    cmd = ["docker", "build", "-f", dockerfile]
    for key, value in build_args.items():
        cmd += ["--build-arg", f"{key}={value}"]
    for tag in tags:
        cmd += ["-t", f"{image_name}:{tag}"]
    cmd.append(context_dir)
    return cmd


def run_detached_command(
    *,
    image_ref: str,
    name: str,
    env: Optional[Mapping[str, str]] = None,
    ports: Optional[Mapping[int, int]] = None,
    restart: Optional[str] = None,
) -> List[str]:
    """``docker run -d``; ``ports`` maps host port -> container port."""
    cmd = ["docker", "run", "-d", "--name", name]
    for host_port, container_port in (ports or {}).items():
        cmd += ["-p", f"{host_port}:{container_port}"]
    for key, value in (env or {}).items():
        cmd += ["-e", f"{key}={value}"]
    if restart:
        cmd += ["--restart", restart]
    cmd.append(image_ref)
    return cmd


def is_running_command(name: str) -> List[str]:
    return ["docker", "inspect", "-f", "{{.State.Running}}", name]


def logs_command(name: str, *, tail: int = 200) -> List[str]:
    return ["docker", "logs", "--tail", str(tail), name]


def stop_command(name: str) -> List[str]:
    return ["docker", "stop", name]


def rm_command(name: str, *, force: bool = False) -> List[str]:
    return ["docker", "rm", "-f", name] if force else ["docker", "rm", name]


def tag_command(source_ref: str, target_ref: str) -> List[str]:
    return ["docker", "tag", source_ref, target_ref]


def push_command(ref: str) -> List[str]:
    return ["docker", "push", ref]


def prune_images_command() -> List[str]:
    return ["docker", "image", "prune", "-f"]


def list_images_command(image_name: str) -> List[str]:
    return ["docker", "images", image_name]


def list_containers_command(name_filter: str) -> List[str]:
    return ["docker", "ps", "-a", "--filter", f"name={name_filter}"]


def scan_command(
    image_ref: str,
    *,
    scanner_image: str = "aquasec/trivy:latest",
    severity: str = "HIGH,CRITICAL",
) -> List[str]:
    """Run the image scanner as a container against the local engine."""
    return [
        "docker",
        "run",
        "--rm",
        "-v",
        "/var/run/docker.sock:/var/run/docker.sock",
        scanner_image,
        "image",
        "--exit-code",
        "1",
        "--severity",
        severity,
        image_ref,
    ]
