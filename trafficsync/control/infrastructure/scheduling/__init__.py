from .base import ScheduledCall, run_guarded
from .thread_pool import ThreadPoolScheduler
from .virtual import VirtualScheduler
