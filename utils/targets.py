import logging
import re
from typing import NamedTuple, Optional

from utils.config import ConfigurationError

whitespace_regex = re.compile(r'\s+')


class Target(NamedTuple):
    address: str
    name: str


def cut_space(value: str) -> str:
    """Removes every whitespace character, not only the leading and trailing ones"""
    return whitespace_regex.sub('', value or '')


def unique_in_order(values: list) -> list:
    seen = set()
    unique_values = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique_values.append(value)
    return unique_values


class TargetResolver:
    """
    Maps packet addresses to the logical target names given in the
    configuration. With nothing configured the resolver reports itself as
    empty and the collector switches to anonymous, deduplicated counting.
    """

    def __init__(self, target_ips: str = '', target_names: str = ''):
        addresses = unique_in_order(cut_space(target_ips).split(','))
        names = unique_in_order(cut_space(target_names).split(','))
        if len(addresses) != len(names):
            raise ConfigurationError(
                'please give every prometheus target a unique IP address and a unique name '
                f'({len(addresses)} addresses, {len(names)} names)')

        self.is_empty = addresses == [''] and names == ['']
        if self.is_empty:
            self.targets = []
            logging.info('Start prometheus with no targets')
        else:
            self.targets = [Target(address, name) for address, name in zip(addresses, names)]
            logging.info(f'Start prometheus with targets: {self.targets}')

    def resolve(self, src_ip: str, dst_ip: str) -> Optional[str]:
        """
        Returns the name of the first configured target whose address is
        contained in the source or destination address, None if none matches.
        """
        for target in self.targets:
            if target.address in src_ip or target.address in dst_ip:
                return target.name
        return None
