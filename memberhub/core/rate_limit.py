"""
Shared slowapi limiter.

Public endpoints have no authenticated caller, so they are limited per client
address. The limiter is attached to ``app.state`` in ``memberhub.main``.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from memberhub.core import config


limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)
