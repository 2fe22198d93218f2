"""Monitor core — check models, single-server checker, network gate."""

from .checker import check_server
from .models import AutoCheckConfig, CheckResult, Server, append_check, classify
from .network import ConnectivityMonitor, NetworkGate
