"""
Prometheus-compatible metrics for observability.

Tracks dispatch and lifecycle activity:
- Booking status transitions (by from/to status)
- Technician assignments
- Revenue records written
- Recommendation requests

Usage:
    from hvac_dispatch.lib.metrics import get_metrics_collector
    
    metrics = get_metrics_collector()
    metrics.increment_transitions(from_status="pending", to_status="confirmed")
    
    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style counter collector.
    
    Counters:
    - booking_transitions_total: Status changes (labels: from_status, to_status)
    - technician_assignments_total: Jobs registered on a technician
    - revenue_records_total: Ledger entries written (labels: service_type)
    - recommendation_requests_total: Matching engine calls
    
    Thread-safe for concurrent increments.
    """
    
    HELP_TEXTS = {
        "booking_transitions_total": "Total number of booking status transitions",
        "technician_assignments_total": "Total number of jobs assigned to technicians",
        "revenue_records_total": "Total number of revenue records written",
        "recommendation_requests_total": "Total number of technician recommendation requests",
    }
    
    def __init__(self):
        self._lock = Lock()
        
        # key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}
    
    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        return (metric_name, tuple(sorted(labels.items())))
    
    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount
    
    def increment_transitions(self, from_status: str, to_status: str, amount: int = 1):
        """Count one booking status change."""
        labels = {
            "from_status": from_status.lower(),
            "to_status": to_status.lower(),
        }
        self._increment("booking_transitions_total", labels, amount)
    
    def increment_assignments(self, amount: int = 1):
        self._increment("technician_assignments_total", {}, amount)
    
    def increment_revenue_records(self, service_type: str, amount: int = 1):
        self._increment("revenue_records_total", {"service_type": service_type.lower()}, amount)
    
    def increment_recommendation_requests(self, amount: int = 1):
        self._increment("recommendation_requests_total", {}, amount)
    
    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.
        
        Returns:
            Prometheus-compatible text output
        """
        output_lines = []
        
        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))
        
        for metric_name in sorted(metrics_by_name.keys()):
            help_text = self.HELP_TEXTS.get(metric_name, "Counter metric")
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")
            
            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                if labels_dict:
                    labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                    output_lines.append(f"{metric_name}{{{labels_str}}} {value}")
                else:
                    output_lines.append(f"{metric_name} {value}")
            
            output_lines.append("")
        
        return "\n".join(output_lines)
    
    def get_counter_value(self, metric_name: str, labels: Dict[str, str] = None) -> int:
        """Get current value of a specific counter."""
        key = self._get_counter_key(metric_name, labels or {})
        with self._lock:
            return self._counters.get(key, 0)
    
    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """
    Get global metrics collector singleton.
    
    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
