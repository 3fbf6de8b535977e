"""Allen-Bradley EtherNet/IP session module.

Provides communication with Logix-family PLCs using the pycomm3 library.
"""

from eip_bridge.adapters.southbound.eip.driver import EIPSession

__all__ = ["EIPSession"]
