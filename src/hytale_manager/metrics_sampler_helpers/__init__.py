"""Helper modules for the metrics sampler."""

from .network_counter_reader import (
    LinuxNetworkCounterReader,
    NetstatNetworkCounterReader,
    NetworkCounterReader,
    NetworkCounters,
    UnavailableNetworkCounterReader,
    parse_netstat_ibn,
    parse_proc_net_dev,
    select_network_counter_reader,
)
from .process_metrics_reader import ProcessMetricsReader, ProcessSample, PsutilProcessMetricsReader
from .rate_tracker import NetworkRateTracker

__all__ = [
    "LinuxNetworkCounterReader",
    "NetstatNetworkCounterReader",
    "NetworkCounterReader",
    "NetworkCounters",
    "NetworkRateTracker",
    "ProcessMetricsReader",
    "ProcessSample",
    "PsutilProcessMetricsReader",
    "UnavailableNetworkCounterReader",
    "parse_netstat_ibn",
    "parse_proc_net_dev",
    "select_network_counter_reader",
]
