#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

import netifaces
from ipaddress import IPv4Address

from .internal_types import *

def get_default_ip_gateway() -> Tuple[Optional[str], Optional[str]]:
    """Returns the (gateway_ip_address: str, gateway_interface_name: str) for the default IPv4 gateway, if any.
       returns (None, None) if there is no default gateway."""
    gws = netifaces.gateways()
    if "default" in gws:
        default_gateway_infos = gws["default"]
        if netifaces.AF_INET in default_gateway_infos:
            gw_ip, gw_interface_name = default_gateway_infos[netifaces.AF_INET][:2]
            return (gw_ip, gw_interface_name)
    return (None, None)

def get_local_ip_addresses_and_interfaces(include_loopback: bool=True) -> List[Tuple[str, str, Optional[str]]]:
    """Returns a list of Tuple[ip_address: str, interface_name: str, broadcast_address: Optional[str]] for the
       IPv4 addresses of the local host. The result is sorted in a way that attempts to place the "preferred"
       canonical IP address first in the list, according to the following scheme:
           1. Addresses on the default gateway interface precede all other addresses.
           2. Non-loopback addresses precede loopback addresses.
           3. Addresses that begin with 172. follow other addresses. This is a hack to
              deprioritize local docker network addresses.

       Switchers answer discovery probes on the subnet of the interface the probe went out on,
       so this is useful for telling which network a discovered device is on.
    """
    result_with_priority: List[Tuple[int, str, str, Optional[str]]] = []
    _, default_gateway_ifname = get_default_ip_gateway()
    for ifname in netifaces.interfaces():
        ifinfo = netifaces.ifaddresses(ifname)
        if netifaces.AF_INET in ifinfo:
            for addrinfo in ifinfo[netifaces.AF_INET]:
                ip_str = addrinfo['addr']
                assert isinstance(ip_str, str)
                broadcast = addrinfo.get('broadcast', None)
                if ifname == default_gateway_ifname:
                    priority = 0
                elif IPv4Address(ip_str).is_loopback:
                    if not include_loopback:
                        continue
                    priority = 3
                elif ip_str.startswith('172.'):
                    priority = 2
                else:
                    priority = 1

                result_with_priority.append((priority, ip_str, ifname, broadcast))
    return [ (ip, ifname, broadcast) for _, ip, ifname, broadcast in sorted(result_with_priority, key=lambda x: x[:3]) ]

def get_local_ip_addresses(include_loopback: bool=True) -> List[str]:
    """Returns a List[ip_address: str] for the IPv4 addresses of the local host, preferred address first.
       See get_local_ip_addresses_and_interfaces() for the ordering."""
    return [ ip for ip, _, _ in get_local_ip_addresses_and_interfaces(include_loopback=include_loopback) ]
