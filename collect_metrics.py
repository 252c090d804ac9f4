import logging
import queue

from metric_registry import MetricName, MetricRegistry
from parsing.common import HepProtoType, SipSummary, TelemetryPacket
from parsing.horaclifix_measurements import dissect_horaclifix_stats
from parsing.rtcp_measurements import dissect_rtcp_stats
from parsing.rtpagent_measurements import dissect_rtp_agent_stats
from parsing.xrtp_measurements import dissect_xrtp_stats
from utils.config import Settings
from utils.dedup_cache import DedupCache, DedupCacheFullError
from utils.targets import TargetResolver

# Label of heplify_packets_total / heplify_packets_size per HEP type
PACKET_TYPE_LABELS = {
    HepProtoType.SIP: 'sip',
    HepProtoType.RTCP: 'rtcp',
    HepProtoType.HORACLIFIX: 'horaclifix',
    HepProtoType.LOG: 'log',
}

ANONYMOUS_TARGET = ''


def to_proto_type(value):
    try:
        return HepProtoType(value)
    except ValueError:
        return None


class MetricsCollector:
    """
    Turns decoded HEP packets into metric updates. Packets are processed one
    at a time, in the order they are delivered.
    """

    def __init__(self, settings: Settings, registry: MetricRegistry = None, dedup_cache: DedupCache = None):
        self.settings = settings
        self.registry = registry or MetricRegistry(settings)
        self.targets = TargetResolver(settings.prom_target_ip, settings.prom_target_name)
        self.dedup_cache = None
        if self.targets.is_empty:
            self.dedup_cache = dedup_cache if dedup_cache is not None else DedupCache()

    def collect(self, packet_queue: queue.Queue):
        """Drains the queue until the producer closes it by putting None"""
        while True:
            packet = packet_queue.get()
            if packet is None:
                logging.info('Packet channel closed, stopping collection')
                break
            self.process_packet(packet)

    def process_packet(self, packet: TelemetryPacket):
        proto_type = to_proto_type(packet.proto_type)
        if proto_type is None:
            return

        if type_label := PACKET_TYPE_LABELS.get(proto_type):
            self.registry.inc_counter(MetricName.PACKETS_TOTAL, type_label)
            self.registry.set_gauge(MetricName.PACKETS_SIZE, float(len(packet.payload or b'')), type_label)

        match proto_type:
            case HepProtoType.SIP:
                if packet.sip is not None:
                    self.process_sip(packet)
            case HepProtoType.RTCP:
                dissect_rtcp_stats(self.registry, packet.payload)
            case HepProtoType.RTP_AGENT:
                if self.settings.rtp_agent_stats:
                    dissect_rtp_agent_stats(self.registry, packet.payload)
            case HepProtoType.HORACLIFIX:
                if self.settings.horaclifix_stats:
                    dissect_horaclifix_stats(self.registry, packet.payload)

    def process_sip(self, packet: TelemetryPacket):
        sip = packet.sip
        if not self.targets.is_empty:
            target_name = self.targets.resolve(packet.src_ip, packet.dst_ip)
            if target_name is None:
                return
            self.publish_sip(target_name, sip)
            return

        if not self.record_first_observation(sip):
            return
        self.publish_sip(ANONYMOUS_TARGET, sip)

    def record_first_observation(self, sip: SipSummary) -> bool:
        """False when the same call/method/cseq was already seen in the dedup window"""
        key = sip.call_id + sip.method + sip.cseq_method
        if self.dedup_cache.contains(key):
            logging.debug(f'[{sip.call_id}] Skipping duplicate {sip.method} {sip.cseq_method}')
            return False
        try:
            self.dedup_cache.add(key)
        except DedupCacheFullError as e:
            logging.warning(f'{e}')
        return True

    def publish_sip(self, target_name: str, sip: SipSummary):
        self.registry.inc_counter(MetricName.METHOD_RESPONSE, target_name, sip.method, sip.cseq_method)
        if sip.rtp_stat_value:
            dissect_xrtp_stats(self.registry, target_name, sip.rtp_stat_value)
