from availcal.config.manager import ConfigManager

__all__ = ["ConfigManager"]
