from .server import TickLoop, create_app

__all__ = ["TickLoop", "create_app"]
