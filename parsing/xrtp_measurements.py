# xrtp_measurements.py

import logging
from typing import NamedTuple, Optional

from metric_registry import MetricName, MetricRegistry
from parsing.common import parse_int, trunc_div


class XrtpStats(NamedTuple):
    """
    Values decoded from an X-RTP-Stat string. Fields that were absent or did
    not parse are None; the quality estimation then uses 0 for them.
    """
    call_setup_ms: Optional[int] = None
    packets_received: Optional[int] = None
    packets_sent: Optional[int] = None
    lost_received: Optional[int] = None
    lost_sent: Optional[int] = None
    jitter_received: Optional[int] = None
    jitter_sent: Optional[int] = None
    mean_delay: Optional[int] = None


class XrtpQuality(NamedTuple):
    loss_ratio: int
    effective_latency: int
    r_factor: float
    mos: float


def split_xrtp_stats(stats: str) -> dict:
    """
    Splits 'CS=5000;PR=100;...' into a key/value map. Segments that do not
    split on '=' into exactly two parts are ignored; a repeated key keeps the
    last value.
    """
    fields = {}
    for pair in stats.split(';'):
        key_value = pair.split('=')
        if len(key_value) == 2:
            fields[key_value[0]] = key_value[1]
    return fields


def _parse_field(key: str, value: str) -> Optional[int]:
    try:
        return parse_int(value)
    except ValueError as e:
        logging.warning(f'could not parse XRTP {key} value: {e}')
        return None


def _parse_pair(key: str, value: str, parts: int) -> tuple:
    values = value.split(',')
    if len(values) != parts:
        logging.debug(f'XRTP {key} expects {parts} comma separated values, got {value!r}')
        return (None,) * parts
    return tuple(_parse_field(key, v) for v in values)


def parse_xrtp_stats(stats: str) -> XrtpStats:
    """Decodes the fields used by the quality estimation from an X-RTP-Stat string"""
    fields = split_xrtp_stats(stats)
    decoded = {}

    # Empty values are skipped without a log entry
    if value := fields.get('CS'):
        decoded['call_setup_ms'] = _parse_field('CS', value)
    if value := fields.get('PR'):
        decoded['packets_received'] = _parse_field('PR', value)
    if value := fields.get('PS'):
        decoded['packets_sent'] = _parse_field('PS', value)
    if value := fields.get('PL'):
        decoded['lost_received'], decoded['lost_sent'] = _parse_pair('PL', value, 2)
    if value := fields.get('JI'):
        decoded['jitter_received'], decoded['jitter_sent'] = _parse_pair('JI', value, 2)
    if value := fields.get('DL'):
        decoded['mean_delay'], _, _ = _parse_pair('DL', value, 3)
    return XrtpStats(**decoded)


def estimate_quality(stats: XrtpStats) -> XrtpQuality:
    """
    Effective latency, R-factor and MOS-CQ from the decoded statistics.

    The computation keeps integer arithmetic for the loss ratio and the
    effective latency and only switches to floats for R and MOS, so results
    are identical to the reference formula:

        R   = 93.2 - el/40             if el < 160
        R   = 93.2 - (el - 120)/10     otherwise
        R  -= loss * 2.5
        MOS = 1 + 0.035*R + 0.000007*R*(R-60)*(100-R)
    """
    packets_received = stats.packets_received or 0
    packets_sent = stats.packets_sent or 0
    lost_received = stats.lost_received or 0
    lost_sent = stats.lost_sent or 0
    jitter_received = stats.jitter_received or 0
    mean_delay = stats.mean_delay or 0

    # Also covers negative counts that cancel out
    if packets_received + packets_sent == 0:
        packets_received, packets_sent = 1, 1

    loss_ratio = trunc_div((lost_received + lost_sent) * 100, packets_received + packets_sent)
    effective_latency = (jitter_received * 2) + (mean_delay + 10)

    if effective_latency < 160:
        r_factor = 93.2 - (float(effective_latency) / 40)
    else:
        r_factor = 93.2 - (float(effective_latency - 120) / 10)
    r_factor = r_factor - (float(loss_ratio) * 2.5)

    mos = 1 + (0.035) * r_factor + (0.000007) * r_factor * (r_factor - 60) * (100 - r_factor)
    return XrtpQuality(loss_ratio=loss_ratio, effective_latency=effective_latency, r_factor=r_factor, mos=mos)


def dissect_xrtp_stats(registry: MetricRegistry, target_name: str, stats: str) -> XrtpQuality:
    """
    Publishes the X-RTP-Stat fields and the estimated MOS for one target.
    Fields that did not decode are not published; MOS always is.
    """
    decoded = parse_xrtp_stats(stats)

    if decoded.call_setup_ms is not None:
        registry.set_gauge(MetricName.XRTP_CS, float(trunc_div(decoded.call_setup_ms, 1000)), target_name)
    if decoded.lost_received is not None:
        registry.set_gauge(MetricName.XRTP_PLR, float(decoded.lost_received), target_name)
    if decoded.lost_sent is not None:
        registry.set_gauge(MetricName.XRTP_PLS, float(decoded.lost_sent), target_name)
    if decoded.jitter_received is not None:
        registry.set_gauge(MetricName.XRTP_JIR, float(decoded.jitter_received), target_name)
    if decoded.jitter_sent is not None:
        registry.set_gauge(MetricName.XRTP_JIS, float(decoded.jitter_sent), target_name)
    if decoded.mean_delay is not None:
        registry.set_gauge(MetricName.XRTP_DLE, float(decoded.mean_delay), target_name)

    quality = estimate_quality(decoded)
    # R-factor is not a published series, only MOS is
    registry.set_gauge(MetricName.XRTP_MOS, quality.mos, target_name)
    logging.debug(f'[{target_name}] XRTP loss {quality.loss_ratio}, latency {quality.effective_latency}, '
                  f'R {quality.r_factor:.2f}, MOS {quality.mos:.2f}')
    return quality
