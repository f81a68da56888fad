"""Scanner data models

Shapes shared by the internal TCP pipeline and the nmap delegate, so callers
never need to know which backend produced a report.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_HOST = "127.0.0.1"


class PortStatus(str, Enum):
    """Outcome of a single probe"""
    OPEN = "open"
    CLOSED = "closed"  # Connection actively refused
    FILTERED = "filtered"  # No answer before the timeout


class ScanOptions(BaseModel):
    """Options for a scan invocation"""

    hosts: List[str] = Field(default_factory=lambda: [DEFAULT_HOST], description="Targets; localhost by default")
    ports: Optional[List[int]] = Field(None, description="Explicit ports; None scans the common-ports table")
    os_detection: bool = Field(False, description="Guess the OS from the open port set")
    version_detection: bool = Field(False, description="Grab banners and extract service versions")
    timeout: float = Field(0.2, gt=0, description="Per-probe connect timeout in seconds")
    parallelism: int = Field(100, ge=1, description="Maximum concurrent probes per batch")

    @field_validator("hosts")
    @classmethod
    def check_hosts(cls, v: List[str]) -> List[str]:
        cleaned = [h.strip() for h in v]
        if not cleaned or any(not h for h in cleaned):
            raise ValueError("hosts must be a non-empty list of non-empty strings")
        return cleaned

    @field_validator("ports")
    @classmethod
    def check_ports(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return None
        if not v:
            raise ValueError("ports must be None (common ports) or a non-empty list")
        for port in v:
            if port < 1 or port > 65535:
                raise ValueError(f"Invalid port: {port}")
        return v


class PortProbeResult(BaseModel):
    """Result for one (host, port) probe"""

    port: int
    status: PortStatus
    protocol: str = "tcp"
    service: Optional[str] = None
    version: Optional[str] = None


class ServiceInfo(BaseModel):
    """Detected service; correlate with ports by position or port membership"""

    name: str
    version: Optional[str] = None
    info: Optional[str] = None


class ScanReport(BaseModel):
    """Scan result for one host

    ``ports`` holds Open ports only, in probe completion order.
    """

    host: str
    ports: List[PortProbeResult] = Field(default_factory=list)
    os_guess: Optional[str] = None
    services: List[ServiceInfo] = Field(default_factory=list)

    def open_ports(self) -> List[int]:
        """Open port numbers in report order"""
        return [p.port for p in self.ports if p.status == PortStatus.OPEN]
