# rtpagent_measurements.py

from typing import NamedTuple, Optional

from metric_registry import MetricName, MetricRegistry
from parsing.common import ReportField, decode_report_fields, load_json_payload

RTP_AGENT_FIELDS = (
    ReportField('delta', ('DELTA',)),
    ReportField('jitter', ('JITTER',)),
    ReportField('mos', ('MOS',)),
    ReportField('packets_lost', ('PACKET_LOSS',)),
    ReportField('rfactor', ('RFACTOR',)),
    ReportField('skew', ('SKEW',)),
)


class RtpAgentReport(NamedTuple):
    delta: Optional[float] = None
    jitter: Optional[float] = None
    mos: Optional[float] = None
    packets_lost: Optional[float] = None
    rfactor: Optional[float] = None
    skew: Optional[float] = None


RTP_AGENT_METRICS = {
    'delta': MetricName.RTPAGENT_DELTA,
    'jitter': MetricName.RTPAGENT_JITTER,
    'mos': MetricName.RTPAGENT_MOS,
    'packets_lost': MetricName.RTPAGENT_PACKETS_LOST,
    'rfactor': MetricName.RTPAGENT_RFACTOR,
    'skew': MetricName.RTPAGENT_SKEW,
}


def parse_rtp_agent_report(payload) -> Optional[RtpAgentReport]:
    document = load_json_payload(payload, 'rtpagent')
    if document is None:
        return None
    return RtpAgentReport(**decode_report_fields(document, RTP_AGENT_FIELDS, 'rtpagent'))


def dissect_rtp_agent_stats(registry: MetricRegistry, payload) -> Optional[RtpAgentReport]:
    report = parse_rtp_agent_report(payload)
    if report is None:
        return None
    for attribute, value in report._asdict().items():
        if value is not None:
            registry.set_gauge(RTP_AGENT_METRICS[attribute], value)
    return report
