from aip.config.settings import settings

__all__ = ["settings"]
