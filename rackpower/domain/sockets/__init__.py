"""
Socket Domain Module
====================

Room/rack/socket hierarchy and observed socket status.
"""
from rackpower.domain.sockets.socket_entity import Rack, Room, Socket, Status

__all__ = [
    "Rack",
    "Room",
    "Socket",
    "Status",
]
