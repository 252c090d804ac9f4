import json
import logging
import re
from enum import Enum
from typing import NamedTuple, Optional

# Values above this are sentinels ("unknown"/"not applicable"), e.g. 0xFFFFFF
# for RTCP cumulative packets lost or 0xFFFFFFFF from SBC counters.
NORM_MAX_CEILING = 10000000

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_int_regex = re.compile(r'[+-]?[0-9]+')
_float_regex = re.compile(r'[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?')

_MISSING = object()


class HepProtoType(Enum):
    """HEP protocol-type tags handled by the collector"""
    SIP = 1
    RTCP = 5
    RTP_AGENT = 34
    HORACLIFIX = 38
    LOG = 100


class SipSummary(NamedTuple):
    """SIP fields already decoded upstream"""
    method: str
    cseq_method: str
    call_id: str
    rtp_stat_value: str = ''


class TelemetryPacket(NamedTuple):
    """Describes a decoded HEP packet as delivered by the upstream decoder"""
    proto_type: int
    src_ip: str
    dst_ip: str
    payload: bytes
    sip: Optional[SipSummary] = None


def norm_max(value: float) -> float:
    """
    Suppresses sentinel values before they reach a gauge
    :param value: The decoded value
    :return: The value itself, or 0 if it is above NORM_MAX_CEILING
    """
    if value > NORM_MAX_CEILING:
        return 0
    return value


def parse_int(value: str) -> int:
    """
    Strict decimal integer parsing: optional sign followed by digits only.
    Raises ValueError for anything else (blanks, underscores, decimals) and
    for values that do not fit in 64 bits.
    """
    if not _int_regex.fullmatch(value):
        raise ValueError(f'invalid syntax: parsing {value!r}')
    number = int(value)
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError(f'value out of range: parsing {value!r}')
    return number


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero"""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def load_json_payload(payload, report_name: str) -> Optional[dict]:
    """
    Parse a JSON object payload
    :param payload: Raw payload, bytes or str
    :param report_name: Name used in log messages
    :return: The decoded object, None if the payload is not a JSON object
    """
    try:
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode('utf-8')
        document = json.loads(payload)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        logging.warning(f'could not decode {report_name} payload: {e}')
        return None
    if not isinstance(document, dict):
        logging.warning(f'{report_name} payload is not a JSON object')
        return None
    return document


def lookup_path(document: dict, path: tuple):
    """
    Walks a decoded JSON document along a path of keys and list indexes.
    Returns a module sentinel if any step of the path is absent.
    """
    node = document
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or step >= len(node):
                return _MISSING
            node = node[step]
        else:
            if not isinstance(node, dict) or step not in node:
                return _MISSING
            node = node[step]
    return node


def is_missing(value) -> bool:
    return value is _MISSING


def to_float(value) -> float:
    """
    Converts a JSON value into a float. Numbers and plain decimal strings are
    accepted. Padded strings, digit separators, nan/inf, booleans, null,
    objects and arrays are rejected with ValueError.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f'not a number: {value!r}')
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not _float_regex.fullmatch(value):
            raise ValueError(f'not a number: {value!r}')
        return float(value)
    raise ValueError(f'not a number: {value!r}')


class ReportField(NamedTuple):
    """One field of a structured report: where to find it and how to treat it"""
    attribute: str
    path: tuple
    divisor: float = 1
    clamp: bool = False


def decode_report_fields(document: dict, fields: tuple, report_name: str) -> dict:
    """
    Evaluates every numeric field of a report in a single pass.
    Absent fields map to None silently; fields that fail to convert are
    logged and also map to None.
    """
    values = {}
    for report_field in fields:
        raw = lookup_path(document, report_field.path)
        if is_missing(raw):
            values[report_field.attribute] = None
            continue
        try:
            value = to_float(raw)
        except (ValueError, OverflowError) as e:
            logging.warning(f'could not decode {report_field.attribute} from {report_name} report: {e}')
            values[report_field.attribute] = None
            continue
        if report_field.divisor != 1:
            value = value / report_field.divisor
        if report_field.clamp:
            value = norm_max(value)
        values[report_field.attribute] = value
    return values
