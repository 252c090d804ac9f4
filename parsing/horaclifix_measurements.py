# horaclifix_measurements.py

import logging
from typing import NamedTuple, Optional

from metric_registry import MetricName, MetricRegistry
from parsing.common import ReportField, decode_report_fields, is_missing, load_json_payload, lookup_path

IDENTITY_KEYS = (('sbc_name', 'NAME'), ('inc_realm', 'INC_REALM'), ('out_realm', 'OUT_REALM'))

# (attribute suffix, report key suffix, divisor)
# MOS and R values are reported multiplied by 100.
_DIRECTION_FIELDS = (
    ('rtp_mos', 'MOS', 100),
    ('rtp_rval', 'RVAL', 100),
    ('rtp_packets', 'RTP_PK', 1),
    ('rtp_lost_packets', 'RTP_PK_LOSS', 1),
    ('rtp_avg_jitter', 'RTP_AVG_JITTER', 1),
    ('rtp_max_jitter', 'RTP_MAX_JITTER', 1),
    ('rtcp_packets', 'RTCP_PK', 1),
    ('rtcp_lost_packets', 'RTCP_PK_LOSS', 1),
    ('rtcp_avg_jitter', 'RTCP_AVG_JITTER', 1),
    ('rtcp_max_jitter', 'RTCP_MAX_JITTER', 1),
    ('rtcp_avg_lat', 'RTCP_AVG_LAT', 1),
    ('rtcp_max_lat', 'RTCP_MAX_LAT', 1),
)

# Every numeric value is clamped, SBC counters use 0xFFFFFFFF for "not measured"
HORACLIFIX_FIELDS = tuple(
    ReportField(f'{direction}_{attribute}', (f'{direction.upper()}_{key}',), divisor=divisor, clamp=True)
    for direction in ('inc', 'out')
    for attribute, key, divisor in _DIRECTION_FIELDS
)

HORACLIFIX_METRICS = {
    report_field.attribute: MetricName[f'HORACLIFIX_{report_field.attribute.upper()}']
    for report_field in HORACLIFIX_FIELDS
}


class SbcIdentity(NamedTuple):
    sbc_name: str
    inc_realm: str
    out_realm: str


class HoraclifixReport(NamedTuple):
    """SBC aggregate report: identity labels plus one optional value per metric"""
    identity: SbcIdentity
    values: dict


def parse_sbc_identity(document: dict) -> Optional[SbcIdentity]:
    """The three label values are mandatory; None if any of them is not a string"""
    identity = {}
    for attribute, key in IDENTITY_KEYS:
        value = lookup_path(document, (key,))
        if is_missing(value):
            logging.warning(f'could not decode {attribute} from horaclifix report: {key} is missing')
            return None
        if not isinstance(value, str):
            logging.warning(f'could not decode {attribute} {value!r} from horaclifix report')
            return None
        identity[attribute] = value
    return SbcIdentity(**identity)


def parse_horaclifix_report(payload) -> Optional[HoraclifixReport]:
    document = load_json_payload(payload, 'horaclifix')
    if document is None:
        return None
    identity = parse_sbc_identity(document)
    if identity is None:
        return None
    return HoraclifixReport(identity=identity,
                            values=decode_report_fields(document, HORACLIFIX_FIELDS, 'horaclifix'))


def dissect_horaclifix_stats(registry: MetricRegistry, payload) -> Optional[HoraclifixReport]:
    """
    Publishes an SBC aggregate report labelled by SBC name and realms.
    Nothing is published when the identity fields cannot be decoded.
    """
    report = parse_horaclifix_report(payload)
    if report is None:
        return None
    for attribute, value in report.values.items():
        if value is not None:
            registry.set_gauge(HORACLIFIX_METRICS[attribute], value, *report.identity)
    return report
