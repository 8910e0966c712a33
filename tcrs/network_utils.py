"""
Network connectivity utilities for the TCRS client.

The TCRS server usually sits behind a company VPN, so a failed request
is far more often a network problem than an application one. These
helpers check the server and turn low-level failures into hints.
"""

import socket
import ssl
from typing import Optional, Tuple

import httpx

from . import __version__

# Substrings of connect errors, checked in order, when no typed cause is chained
CONNECT_FAILURE_KINDS = (
    (('name or service not known', 'getaddrinfo', 'nodename nor servname',
      'temporary failure in name resolution'), 'DNS resolution failed'),
    (('certificate', 'ssl'), 'SSL certificate error'),
    (('refused',), 'Connection refused'),
)

VPN_INDICATORS = (
    'dns', 'name resolution', 'name or service not known', 'getaddrinfo',
    'connection refused', 'timeout', 'timed out',
    'network unreachable', 'network is unreachable', 'no route to host',
    'tunnel', 'proxy', 'vpn',
)

VPN_HINTS = (
    "This error is often caused by:",
    "  - VPN not connected to the company network",
    "  - Proxy not authenticated",
    "  - Firewall blocking the connection",
    "",
    "Please ensure:",
    "  1. Your VPN is turned ON and authenticated",
    "  2. You can open the TCRS website in your browser",
)

GENERIC_HINTS = (
    "Please check:",
    "  1. Your network connection is working",
    "  2. The TCRS server is up",
)


def _typed_cause(error: BaseException) -> Optional[str]:
    """Label a connect error by the OS-level exception chained under it."""
    seen = error
    while seen is not None:
        if isinstance(seen, socket.gaierror):
            return 'DNS resolution failed'
        if isinstance(seen, ssl.SSLError):
            return 'SSL certificate error'
        if isinstance(seen, ConnectionRefusedError):
            return 'Connection refused'
        seen = seen.__cause__ or seen.__context__
    return None


def describe_connect_error(error: httpx.ConnectError) -> str:
    """
    Turn a connect error into a one-line description.

    Args:
        error: Error raised while opening the connection

    Returns:
        Message prefixed with the failure kind, e.g. "DNS resolution failed: ..."
    """
    message = str(error)
    label = _typed_cause(error)
    if label is None:
        lowered = message.lower()
        label = next(
            (kind for markers, kind in CONNECT_FAILURE_KINDS
             if any(marker in lowered for marker in markers)),
            'Network error',
        )
    return f"{label}: {message}"


def check_connectivity(base_url: str, timeout: float = 10) -> Tuple[bool, str]:
    """
    Check network connectivity to the TCRS server.

    Sends one HEAD request without following redirects; the server
    answering with a redirect to its login page counts as reachable.

    Args:
        base_url: Server root (e.g., "https://tcrs.example.com")
        timeout: Timeout in seconds (default: 10)

    Returns:
        Tuple of (success, error_message); the message is "" on success

    Examples:
        >>> ok, error = check_connectivity("https://tcrs.example.com")
        >>> if not ok:
        ...     print(f"Connection failed: {error}")
    """
    try:
        response = httpx.head(
            base_url,
            timeout=timeout,
            headers={'User-Agent': f'tcrs-cli/{__version__}'},
        )
    except httpx.TimeoutException:
        return (False, f"Connection timeout after {timeout}s")
    except httpx.ConnectError as e:
        return (False, describe_connect_error(e))
    except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
        return (False, f"Invalid URL: {e}")
    except httpx.HTTPError as e:
        return (False, f"Network error: {e}")

    if response.is_success or response.is_redirect:
        return (True, "")
    return (False, f"HTTP {response.status_code}: {response.reason_phrase}")


def is_vpn_proxy_error(error_message: str) -> bool:
    """
    Guess whether a failure points at the VPN or proxy rather than the server.

    Examples:
        >>> is_vpn_proxy_error("DNS resolution failed")
        True
        >>> is_vpn_proxy_error("HTTP 500: Internal Server Error")
        False
    """
    lowered = error_message.lower()
    return any(indicator in lowered for indicator in VPN_INDICATORS)


def format_connectivity_error(base_url: str, error_message: str, is_vpn_issue: bool) -> str:
    """
    Build the multi-line report shown when the server cannot be reached.

    Args:
        base_url: The URL that failed to connect
        error_message: Failure description
        is_vpn_issue: Whether to show VPN hints instead of generic ones

    Returns:
        Report text
    """
    hints = VPN_HINTS if is_vpn_issue else GENERIC_HINTS
    return "\n".join([
        "NETWORK CONNECTIVITY CHECK FAILED",
        "",
        f"Could not reach TCRS server: {base_url}",
        f"Error: {error_message}",
        "",
        *hints,
        f"  3. TCRS_BASE_URL is correct: {base_url}",
    ])
