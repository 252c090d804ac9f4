"""
Replays decoded HEP packets from a JSON-lines file through the metrics
collector and prints the resulting series.

Each line is one packet:
    {"proto_type": 1, "src_ip": "10.0.0.1", "dst_ip": "10.0.0.2", "payload": "...",
     "sip": {"method": "BYE", "cseq_method": "BYE", "call_id": "abc", "rtp_stat_value": "CS=..."}}
"""
import argparse
import json
import logging
import queue
import sys
import threading

import pandas as pd

from collect_metrics import MetricsCollector
from metric_registry import MetricRegistry
from parsing.common import SipSummary, TelemetryPacket
from utils.config import ConfigurationError, load_settings
from utils.exposition import ExpositionServer


def packet_from_record(record: dict) -> TelemetryPacket:
    """Builds a TelemetryPacket from one decoded JSON line"""
    sip = None
    if sip_record := record.get('sip'):
        sip = SipSummary(method=str(sip_record.get('method', '')),
                         cseq_method=str(sip_record.get('cseq_method', '')),
                         call_id=str(sip_record.get('call_id', '')),
                         rtp_stat_value=str(sip_record.get('rtp_stat_value') or ''))
    payload = record.get('payload', '')
    if not isinstance(payload, str):
        payload = json.dumps(payload)
    return TelemetryPacket(proto_type=int(record['proto_type']),
                           src_ip=str(record.get('src_ip', '')),
                           dst_ip=str(record.get('dst_ip', '')),
                           payload=payload.encode('utf-8'),
                           sip=sip)


def read_packets(file_path):
    """Yields packets from a JSON-lines file, skipping lines that cannot be decoded"""
    with open(file_path, 'r', encoding='utf-8') as packets_file:
        for line_number, line in enumerate(packets_file, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield packet_from_record(json.loads(line))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logging.warning(f'{file_path}:{line_number}: skipping invalid packet: {e}')


def replay(file_path, collector: MetricsCollector):
    """Feeds every packet of the file through a queue drained by the collector thread"""
    packet_queue = queue.Queue(maxsize=10000)
    consumer = threading.Thread(target=collector.collect, args=(packet_queue,), name='collector')
    consumer.start()
    replayed = 0
    try:
        for packet in read_packets(file_path):
            packet_queue.put(packet)
            replayed += 1
    finally:
        packet_queue.put(None)
        consumer.join()
    logging.info(f'Replayed {replayed} packets from {file_path}')
    return replayed


def build_argument_parser():
    parser = argparse.ArgumentParser(description='Replay decoded HEP packets into call quality metrics')
    parser.add_argument('packets', help='JSON-lines file with one decoded packet per line')
    parser.add_argument('--config', help='YAML settings file')
    parser.add_argument('--serve', action='store_true',
                        help='serve /metrics on prom_addr and keep serving until interrupted')
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    return parser


def main(argv=None):
    args = build_argument_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        settings = load_settings(args.config)
        registry = MetricRegistry(settings)
        collector = MetricsCollector(settings, registry)
        server = ExpositionServer(registry.registry, settings.prom_addr) if args.serve else None
    except ConfigurationError as e:
        logging.error(f'Invalid configuration: {e}')
        return 2

    if server is not None:
        try:
            server.start()
        except OSError as e:
            logging.error(f'Could not start metrics exposition on {settings.prom_addr}: {e}')
            return 1

    try:
        replay(args.packets, collector)
        pd.set_option('display.width', 1000)
        pd.set_option('display.max_rows', 500)
        print(registry.get_all_data())
        if server is not None:
            logging.info('Press Ctrl+C to stop.')
            threading.Event().wait()
    except OSError as e:
        logging.error(f'Could not read packets: {e}')
        return 1
    except KeyboardInterrupt:
        logging.info('Interrupted')
    finally:
        if server is not None:
            server.stop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
