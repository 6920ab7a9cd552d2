from .manager import ConfigManager, DEFAULT_CONFIG_DIR
from .models import AppConfig, IntersectionConfig, SchedulerConfig, SignalSpec
