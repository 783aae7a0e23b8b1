# Application Scheduling Package
from .interval_policy import IntervalPolicy, default_policy, end_of_day, start_of_day

__all__ = ["IntervalPolicy", "default_policy", "start_of_day", "end_of_day"]
