"""Target file models and YAML loader.

A target file lists hosts to probe and, optionally, the ports for each::

    targets:
      - host: www.example.com
        ports: ["80", "443"]
      - host: ipv6.example.net
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from happy_probe.middleware.error_handler import TargetFileError

logger = logging.getLogger(__name__)


class TargetSpec(BaseModel):
    """One host entry from a target file."""

    host: str = Field(min_length=1)
    ports: list[str] = Field(default_factory=list)

    def pairs(self, default_ports: list[str]) -> list[tuple[str, str]]:
        ports = self.ports or default_ports
        return [(self.host, str(port)) for port in ports]


def load_targets(yaml_path: str) -> list[TargetSpec]:
    """Parse a target file into typed TargetSpec objects.

    Args:
        yaml_path: Path to the YAML target file.

    Returns:
        The entries in file order. Invalid entries are skipped with an error
        logged; an unreadable or structurally wrong file raises
        ``TargetFileError``.
    """
    path = Path(yaml_path)

    if not path.exists():
        raise TargetFileError(f"Target file not found: {yaml_path}", path=yaml_path)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise TargetFileError(f"Failed to parse target file {yaml_path}: {exc}", path=yaml_path) from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("targets"), list):
        raise TargetFileError(f"Target file {yaml_path} has no 'targets' list", path=yaml_path)

    specs: list[TargetSpec] = []
    for index, entry in enumerate(raw["targets"]):
        if isinstance(entry, str):
            entry = {"host": entry}
        if isinstance(entry, dict) and entry.get("ports") is not None:
            ports = entry["ports"] if isinstance(entry["ports"], list) else [entry["ports"]]
            entry = {**entry, "ports": [str(p) for p in ports]}
        try:
            specs.append(TargetSpec.model_validate(entry))
        except Exception as exc:
            logger.error("Invalid target entry #%d in %s: %s, skipping", index, yaml_path, exc)

    logger.info("Loaded %d targets from %s", len(specs), yaml_path)
    return specs
