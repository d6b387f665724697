"""NUMA parsers for ``numactl --hardware`` and ``lscpu -p=cpu,node``."""
from __future__ import annotations

import re
from typing import Dict, List

from ..errors import ParseError
from ..model import NumaNode
from .common import bytes_to_human_readable

_NODE_CPUS_RE = re.compile(r"^node\s+(\d+)\s+cpus:\s*(.*)$")
_NODE_SIZE_RE = re.compile(r"^node\s+(\d+)\s+size:\s*(\d+)\s*MB$")
_DISTANCE_ROW_RE = re.compile(r"^\s*(\d+):\s+([\d\s]+)$")


def parse_numactl_hardware(text: str) -> Dict[str, NumaNode]:
    """Return nodes keyed by their id as a string, with CPUs, memory and distances."""
    nodes: Dict[int, NumaNode] = {}
    columns: List[int] = []
    in_distances = False

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("node distances:"):
            in_distances = True
            continue
        if in_distances:
            if stripped.startswith("node"):
                columns = [int(token) for token in stripped.split()[1:]]
                continue
            row = _DISTANCE_ROW_RE.match(line)
            if row:
                values = [int(token) for token in row.group(2).split()]
                if len(values) != len(columns):
                    raise ParseError(f"Distance row does not match header: {line!r}")
                node = nodes.setdefault(int(row.group(1)), NumaNode(id=int(row.group(1))))
                node.distances = {str(peer): distance for peer, distance in zip(columns, values)}
            continue

        cpus = _NODE_CPUS_RE.match(stripped)
        if cpus:
            node = nodes.setdefault(int(cpus.group(1)), NumaNode(id=int(cpus.group(1))))
            node.cpus = sorted(int(token) for token in cpus.group(2).split())
            continue
        size = _NODE_SIZE_RE.match(stripped)
        if size:
            node = nodes.setdefault(int(size.group(1)), NumaNode(id=int(size.group(1))))
            node.memory = bytes_to_human_readable(int(size.group(2)) * 1024 * 1024)

    return {str(node_id): nodes[node_id] for node_id in sorted(nodes)}


def parse_cpu_node_map(text: str) -> Dict[int, List[int]]:
    """Parse ``lscpu -p=cpu,node`` into node id -> sorted CPU ids."""
    mapping: Dict[int, List[int]] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        cpu, _, node = line.partition(",")
        if not cpu.isdigit():
            raise ParseError(f"Unexpected lscpu mapping line: {line!r}")
        mapping.setdefault(int(node) if node.isdigit() else 0, []).append(int(cpu))
    return {node: sorted(cpus) for node, cpus in mapping.items()}


def merge_cpu_node_map(nodes: Dict[str, NumaNode], mapping: Dict[int, List[int]]) -> Dict[str, NumaNode]:
    for node_id, cpus in mapping.items():
        node = nodes.get(str(node_id))
        if node is not None:
            node.cpus = sorted(set(node.cpus) | set(cpus))
    return nodes
