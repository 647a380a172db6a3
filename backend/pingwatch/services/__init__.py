"""Services for probing, scheduling, certificate checks and notifications."""
from .prober import ProberService, ProbeOutcome, ProbeStatus
from .event_log import EventLogSink
from .alerter import AlerterService, TelegramNotifier
from .tls_inspector import CertificateInspector
from .certificate_sweep import CertificateSweep
from .scheduler import SchedulerService

__all__ = [
    "ProberService",
    "ProbeOutcome",
    "ProbeStatus",
    "EventLogSink",
    "AlerterService",
    "TelegramNotifier",
    "CertificateInspector",
    "CertificateSweep",
    "SchedulerService",
]
