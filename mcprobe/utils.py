import contextlib
import re

import dns.exception
import dns.resolver
import idna
from loguru import logger

SRV_SERVICE = "_minecraft._tcp"


def is_domain(address: str) -> bool:
    """
    Check whether `address` is a domain name, internationalized names included.

    IP address literals are not domain names.

    :params address: Address to check.
    """
    try:
        punycode_address = idna.encode(address).decode("utf-8")
    except idna.IDNAError:
        return False

    domain_pattern = re.compile(
        r"^(?!-)(?:[A-Za-z0-9-]{1,63}\.)+(?:[A-Za-z]{2,}|xn--[A-Za-z0-9-]{2,})$|^(localhost)$"
    )
    return bool(domain_pattern.match(punycode_address))


def lookup_srv(domain: str, timeout: float | None = None) -> tuple[str, int] | None:
    """
    Resolve the `_minecraft._tcp` SRV record of a domain, as the game client does.

    :params domain: Domain name the player would type in.
    :params timeout: Lifetime of the whole DNS lookup, the resolver default if None.

    :returns: The target host and port of the first record, None when there is no record.
    """
    try:
        refer_domain = idna.encode(domain).decode("utf-8")
    except idna.IDNAError:
        refer_domain = domain

    try:
        srv_response = dns.resolver.resolve(f"{SRV_SERVICE}.{refer_domain}", "SRV", lifetime=timeout)
    except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
        return None

    for rdata in srv_response:
        target = str(rdata.target).rstrip(".")  # type: ignore
        return target, rdata.port  # type: ignore

    return None


def resolve_srv(host: str, port: int, timeout: float | None = None) -> tuple[str, int]:
    """
    Follow the SRV record of `host`, falling back to `host` and `port` themselves.

    IP addresses are returned unchanged. A domain without a usable record, or
    whose lookup fails in DNS, is connected to directly like the game client does.

    :params host: Hostname or IP address
    :params port: Port to use when there is no SRV record
    :params timeout: Lifetime of the DNS lookup
    """
    if not is_domain(host):
        return host, port

    with contextlib.suppress(dns.exception.Timeout, dns.resolver.NoNameservers):
        if srv := lookup_srv(host, timeout):
            logger.debug(f"SRV record of {host}: {srv[0]}:{srv[1]}")
            return srv

    return host, port
