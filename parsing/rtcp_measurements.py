# rtcp_measurements.py

from typing import NamedTuple, Optional

from metric_registry import MetricName, MetricRegistry
from parsing.common import ReportField, decode_report_fields, load_json_payload

# Report block values are clamped: packets_lost is a 24 bit field whose
# all-ones value (0xFFFFFF) some agents send for "unknown".
RTCP_FIELDS = (
    ReportField('fraction_lost', ('report_blocks', 0, 'fraction_lost'), clamp=True),
    ReportField('packets_lost', ('report_blocks', 0, 'packets_lost'), clamp=True),
    ReportField('jitter', ('report_blocks', 0, 'ia_jitter'), clamp=True),
    ReportField('dlsr', ('report_blocks', 0, 'dlsr'), clamp=True),
    ReportField('xr_fraction_lost', ('report_blocks_xr', 'fraction_lost')),
    ReportField('xr_fraction_discard', ('report_blocks_xr', 'fraction_discard')),
    ReportField('xr_burst_density', ('report_blocks_xr', 'burst_density')),
    ReportField('xr_gap_density', ('report_blocks_xr', 'gap_density')),
    ReportField('xr_burst_duration', ('report_blocks_xr', 'burst_duration')),
    ReportField('xr_gap_duration', ('report_blocks_xr', 'gap_duration')),
    ReportField('xr_round_trip_delay', ('report_blocks_xr', 'round_trip_delay')),
    ReportField('xr_end_system_delay', ('report_blocks_xr', 'end_system_delay')),
)


class RtcpReport(NamedTuple):
    """Quality values of one RTCP / RTCP-XR report, None when not available"""
    fraction_lost: Optional[float] = None
    packets_lost: Optional[float] = None
    jitter: Optional[float] = None
    dlsr: Optional[float] = None
    xr_fraction_lost: Optional[float] = None
    xr_fraction_discard: Optional[float] = None
    xr_burst_density: Optional[float] = None
    xr_gap_density: Optional[float] = None
    xr_burst_duration: Optional[float] = None
    xr_gap_duration: Optional[float] = None
    xr_round_trip_delay: Optional[float] = None
    xr_end_system_delay: Optional[float] = None


RTCP_METRICS = {
    'fraction_lost': MetricName.RTCP_FRACTION_LOST,
    'packets_lost': MetricName.RTCP_PACKETS_LOST,
    'jitter': MetricName.RTCP_JITTER,
    'dlsr': MetricName.RTCP_DLSR,
    'xr_fraction_lost': MetricName.RTCPXR_FRACTION_LOST,
    'xr_fraction_discard': MetricName.RTCPXR_FRACTION_DISCARD,
    'xr_burst_density': MetricName.RTCPXR_BURST_DENSITY,
    'xr_gap_density': MetricName.RTCPXR_GAP_DENSITY,
    'xr_burst_duration': MetricName.RTCPXR_BURST_DURATION,
    'xr_gap_duration': MetricName.RTCPXR_GAP_DURATION,
    'xr_round_trip_delay': MetricName.RTCPXR_ROUND_TRIP_DELAY,
    'xr_end_system_delay': MetricName.RTCPXR_END_SYSTEM_DELAY,
}


def parse_rtcp_report(payload) -> Optional[RtcpReport]:
    document = load_json_payload(payload, 'rtcp')
    if document is None:
        return None
    return RtcpReport(**decode_report_fields(document, RTCP_FIELDS, 'rtcp'))


def dissect_rtcp_stats(registry: MetricRegistry, payload) -> Optional[RtcpReport]:
    """Publishes every field available in an RTCP JSON report"""
    report = parse_rtcp_report(payload)
    if report is None:
        return None
    for attribute, value in report._asdict().items():
        if value is not None:
            registry.set_gauge(RTCP_METRICS[attribute], value)
    return report
