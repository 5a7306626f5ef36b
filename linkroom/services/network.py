# linkroom/services/network.py

import socket

LOOPBACK = "127.0.0.1"


def get_local_ip() -> str:
    """
    Best guess at this machine's LAN IPv4 address.

    Opens a UDP socket towards a non-routable address (nothing is sent) and
    reads the source address the kernel picked. Falls back to loopback.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        address = sock.getsockname()[0]
    except OSError:
        return LOOPBACK
    finally:
        sock.close()
    return address or LOOPBACK


def join_url(ip: str, port: int, code: str) -> str:
    return f"http://{ip}:{port}?join={code}"
