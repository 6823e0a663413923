import time
from collections.abc import Callable

# Zero-argument callable returning seconds on a monotonic scale.
Clock = Callable[[], float]

default_clock: Clock = time.monotonic
