"""Network parsers for ip, ifconfig, ibstat, ipmitool and lspci output."""
from __future__ import annotations

import json
import re
from typing import Dict, List, Optional, Tuple

from ..errors import ParseError
from ..model import UNKNOWN, IbInterface, InterfaceType, NetworkInterface

VIRTUAL_NAME_PREFIXES = ("lo", "veth", "br", "docker", "virbr")

_IB_CA_RE = re.compile(r"^CA '([^']+)'")
_IB_PORT_RE = re.compile(r"^Port (\d+):")
_IB_STATE_RE = re.compile(r"^State:\s*(.+)$")
_IB_RATE_RE = re.compile(r"^Rate:\s*(.+)$")
_IPMI_IP_RE = re.compile(r"^IP Address\s+:\s+(.+)$", re.MULTILINE)
_IPMI_MAC_RE = re.compile(r"^MAC Address\s+:\s+(.+)$", re.MULTILINE)
_IFCONFIG_HEADER_RE = re.compile(r"^(\S+?):\s+flags=\d+<([^>]*)>(?:.*\bmtu\s+(\d+))?")
_IFCONFIG_MEDIA_RE = re.compile(r"\((\d+)base")


def classify_interface(name: str, link_type: Optional[str] = None) -> InterfaceType:
    if name == "lo" or link_type == "loopback":
        return InterfaceType.LOOPBACK
    if name.startswith(("br", "virbr")):
        return InterfaceType.BRIDGE
    if name.startswith("veth"):
        return InterfaceType.VETH
    if name.startswith("bond"):
        return InterfaceType.BOND
    if "." in name:
        return InterfaceType.VLAN
    if name.startswith("wl"):
        return InterfaceType.WIRELESS
    if name.startswith("ib") or link_type == "infiniband":
        return InterfaceType.INFINIBAND
    return InterfaceType.ETHERNET


def parse_ip_addr_json(text: str) -> List[NetworkInterface]:
    """Parse ``ip -j addr show``; each entry yields name, MAC, first IPv4 address and link type."""
    try:
        entries = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid ip JSON: {exc}") from exc
    if not isinstance(entries, list):
        raise ParseError("ip JSON is not a list of interfaces")

    interfaces: List[NetworkInterface] = []
    for entry in entries:
        name = entry.get("ifname")
        if not name:
            continue
        link_type = entry.get("link_type")
        interface_type = classify_interface(name, link_type)
        ip, prefix = "", ""
        for info in entry.get("addr_info") or []:
            if info.get("family") == "inet":
                ip = info.get("local", "")
                prefix = str(info.get("prefixlen", ""))
                break
        flags = entry.get("flags") or []
        interfaces.append(
            NetworkInterface(
                name=name,
                mac=entry.get("address") or UNKNOWN,
                ip=ip,
                prefix=prefix,
                type_=interface_type.value,
                interface_type=interface_type,
                mtu=int(entry.get("mtu") or 1500),
                is_up="UP" in flags,
            )
        )
    return interfaces


def format_link_speed(mbps: int) -> str:
    if mbps >= 1000 and mbps % 100 == 0:
        return f"{mbps / 1000:g} Gbps"
    return f"{mbps} Mbps"


def is_virtual_name(name: str) -> bool:
    return name.startswith(VIRTUAL_NAME_PREFIXES)


def parse_lspci_vmm(text: str) -> Dict[str, str]:
    """Parse ``lspci -vmm -s <slot>`` into its ``Tag:\tValue`` pairs."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key and not key.startswith(" "):
            values.setdefault(key.strip(), value.strip())
    return values


def parse_ibstat(text: str) -> Optional[List[IbInterface]]:
    """Parse ``ibstat``; returns ``None`` when no port was found."""
    ports: List[IbInterface] = []
    ca: Optional[str] = None
    port: Optional[int] = None
    state = UNKNOWN
    rate = UNKNOWN

    def flush() -> None:
        if ca is not None and port is not None:
            ports.append(IbInterface(name=ca, port=port, state=state, rate=rate))

    for raw in text.splitlines():
        line = raw.strip()
        ca_match = _IB_CA_RE.match(line)
        port_match = _IB_PORT_RE.match(line)
        if ca_match:
            flush()
            ca, port, state, rate = ca_match.group(1), None, UNKNOWN, UNKNOWN
        elif port_match:
            flush()
            port, state, rate = int(port_match.group(1)), UNKNOWN, UNKNOWN
        elif port is not None and (state_match := _IB_STATE_RE.match(line)):
            state = state_match.group(1).strip()
        elif port is not None and (rate_match := _IB_RATE_RE.match(line)):
            rate = rate_match.group(1).strip()
    flush()
    return ports or None


def parse_ipmitool_lan(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(ip, mac)`` from ``ipmitool lan print``."""
    ip = _IPMI_IP_RE.search(text)
    mac = _IPMI_MAC_RE.search(text)
    return (ip.group(1).strip() if ip else None, mac.group(1).strip() if mac else None)


def classify_macos_interface(name: str) -> InterfaceType:
    if name.startswith("lo"):
        return InterfaceType.LOOPBACK
    if name.startswith("bridge"):
        return InterfaceType.BRIDGE
    if name.startswith(("utun", "tun", "tap")):
        return InterfaceType.TUNTAP
    if name == "en0":
        return InterfaceType.WIRELESS
    if name.startswith("en"):
        return InterfaceType.ETHERNET
    return InterfaceType.UNKNOWN


def parse_ifconfig(text: str) -> List[NetworkInterface]:
    """Parse macOS ``ifconfig`` output; blocks start at unindented ``name: flags=...`` lines."""
    interfaces: List[NetworkInterface] = []
    current: Optional[NetworkInterface] = None
    for line in text.splitlines():
        header = _IFCONFIG_HEADER_RE.match(line)
        if header:
            flags = header.group(2).split(",")
            interface_type = classify_macos_interface(header.group(1))
            current = NetworkInterface(
                name=header.group(1),
                type_="AirPort" if interface_type is InterfaceType.WIRELESS else interface_type.value,
                interface_type=interface_type,
                mtu=int(header.group(3)) if header.group(3) else 1500,
                is_up="UP" in flags,
                is_virtual=interface_type in (InterfaceType.LOOPBACK, InterfaceType.BRIDGE, InterfaceType.TUNTAP),
            )
            if header.group(1).startswith(("en", "bridge")):
                current.vendor = "Apple"
                current.pci_id = "Apple Fabric (Integrated)"
            interfaces.append(current)
            continue
        if current is None or not line[:1].isspace():
            continue
        tokens = line.split()
        if not tokens:
            continue
        if tokens[0] == "ether" and len(tokens) > 1:
            current.mac = tokens[1]
        elif tokens[0] == "inet" and len(tokens) > 1 and not current.ip:
            current.ip = tokens[1]
            if "netmask" in tokens:
                current.prefix = str(_netmask_prefix(tokens[tokens.index("netmask") + 1]))
        elif tokens[0] == "media:":
            speed = _IFCONFIG_MEDIA_RE.search(line)
            if speed:
                current.speed_mbps = int(speed.group(1))
                current.speed = format_link_speed(current.speed_mbps)
        elif tokens[0] == "status:":
            current.carrier = tokens[-1] == "active"
    return [interface for interface in interfaces if interface.interface_type is not InterfaceType.LOOPBACK]


def _netmask_prefix(netmask: str) -> int:
    if netmask.startswith("0x"):
        return bin(int(netmask, 16)).count("1")
    return sum(bin(int(octet)).count("1") for octet in netmask.split("."))
