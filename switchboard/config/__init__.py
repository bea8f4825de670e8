from switchboard.config.loader import load_router_config
from switchboard.config.schema import RouterConfig

__all__ = ["RouterConfig", "load_router_config"]
